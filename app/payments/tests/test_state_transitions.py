"""
Tests for Payment state machine transitions using django-fsm.
"""

import pytest
from django_fsm import TransitionNotAllowed

from payments.exceptions import InvalidStateTransitionError
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory


class TestPaymentTransitions:
    """Tests for Payment state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_pending_to_processing(self, db, pending_payment):
        """Should record both correlation ids on submit."""
        pending_payment.submit(merchant_request_id="29115-1", checkout_request_id="ws_CO_1")
        pending_payment.save()

        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.PROCESSING
        assert pending_payment.merchant_request_id == "29115-1"
        assert pending_payment.checkout_request_id == "ws_CO_1"
        assert pending_payment.submitted_at is not None

    def test_processing_to_completed(self, db, processing_payment):
        """Should record the receipt and result code on completion."""
        processing_payment.complete(receipt="NLJ7RT61SV")
        processing_payment.save()

        assert processing_payment.status == PaymentStatus.COMPLETED
        assert processing_payment.provider_receipt == "NLJ7RT61SV"
        assert processing_payment.result_code == 0
        assert processing_payment.completed_at is not None

    def test_processing_to_failed(self, db, processing_payment):
        """Should record the failure description and code."""
        processing_payment.fail(reason="Payment cancelled by user", result_code=1032)
        processing_payment.save()

        assert processing_payment.status == PaymentStatus.FAILED
        assert processing_payment.result_description == "Payment cancelled by user"
        assert processing_payment.result_code == 1032
        assert processing_payment.failed_at is not None

    def test_pending_to_failed(self, db, pending_payment):
        """A payment the provider never accepted can fail directly."""
        pending_payment.fail(reason="STK Push error: Invalid PhoneNumber")
        pending_payment.save()

        assert pending_payment.status == PaymentStatus.FAILED

    def test_completed_to_refunded(self, db, processing_payment):
        """Refund is only reachable from completed."""
        processing_payment.complete()
        processing_payment.refund()
        processing_payment.save()

        assert processing_payment.status == PaymentStatus.REFUNDED
        assert processing_payment.refunded_at is not None

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_cannot_complete_pending(self, db, pending_payment):
        """A payment must be submitted before it can complete."""
        with pytest.raises(TransitionNotAllowed):
            pending_payment.complete()

    def test_failed_is_final(self, db, processing_payment):
        """No transition leaves failed."""
        processing_payment.fail(reason="Declined")

        with pytest.raises(TransitionNotAllowed):
            processing_payment.complete()
        with pytest.raises(TransitionNotAllowed):
            processing_payment.submit(merchant_request_id="m", checkout_request_id="c")

    def test_completed_cannot_fail(self, db, processing_payment):
        """Transitions never run backward."""
        processing_payment.complete()

        with pytest.raises(TransitionNotAllowed):
            processing_payment.fail(reason="late failure")

    def test_cannot_refund_failed(self, db, processing_payment):
        processing_payment.fail()

        with pytest.raises(TransitionNotAllowed):
            processing_payment.refund()

    def test_correlation_ids_are_assigned_once(self, db):
        """Submit refuses to overwrite existing correlation ids."""
        payment = PaymentFactory(checkout_request_id="ws_CO_existing")

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            payment.submit(merchant_request_id="m", checkout_request_id="ws_CO_new")

        assert exc_info.value.error_code == "CORRELATION_IDS_IMMUTABLE"
        assert payment.checkout_request_id == "ws_CO_existing"
        assert payment.status == PaymentStatus.PENDING
