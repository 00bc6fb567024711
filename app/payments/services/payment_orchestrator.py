"""
Payment orchestrator: the provider-agnostic payment lifecycle service.

The orchestrator:
- Validates a payment request and persists a pending Payment before any
  provider call
- Picks the provider adapter from the registry and initiates the charge
- Resolves a payment exactly once, whether the answer comes from a
  callback, a status poll or the stale-payment sweep
- Is the only code that writes a listing's billing fields

Usage:
    from payments.services import InitiatePaymentParams, PaymentOrchestrator

    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(
            listing_id=listing.id,
            payer_id=user.id,
            amount=500,
            payment_type=PaymentType.NEW_LISTING,
            term_months=6,
            contact="0712345678",
        )
    )

    # Later, from the callback handler
    payment = PaymentOrchestrator.find_by_provider_correlation(checkout_id)
    PaymentOrchestrator.resolve(payment.id, PaymentStatus.COMPLETED, provider_receipt="NLJ7RT61SV")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.exceptions import NotFoundError
from core.helpers import mask_phone
from core.services import BaseService
from listings.models import Listing, ListingTier
from payments.adapters import ChargeRequest, ProviderOutcome, get_adapter
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    ProviderError,
)
from payments.models import Payment
from payments.signals import payment_completed, payment_failed
from payments.state_machines import PaymentStatus, PaymentType

if TYPE_CHECKING:
    from django.dispatch import Signal

    from payments.adapters import CallbackData


# =============================================================================
# Parameter & Result Types
# =============================================================================


@dataclass
class InitiatePaymentParams:
    """
    Parameters for initiating a listing payment.

    Attributes:
        listing_id: Listing the term is bought for
        payer_id: User paying
        amount: Whole currency units
        payment_type: new_listing, renewal or upgrade
        term_months: Length of the term bought
        provider: Registry name of the provider adapter
        currency: ISO 4217 code, PAYMENT_DEFAULT_CURRENCY when omitted
        contact: Payer contact (required by mobile-money providers)
        tier: Plan tier the amount was priced at
        metadata: Arbitrary key-value pairs stored on the payment

    Raises:
        PaymentValidationError: On construction with invalid values
    """

    listing_id: uuid.UUID
    payer_id: Any
    amount: int
    payment_type: str
    term_months: int
    provider: str = "mpesa"
    currency: str = field(default_factory=lambda: settings.PAYMENT_DEFAULT_CURRENCY)
    contact: str | None = None
    tier: str = ListingTier.STANDARD
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount is None or self.amount <= 0:
            raise PaymentValidationError(
                "Payment amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount": self.amount},
            )
        if self.term_months is None or self.term_months <= 0:
            raise PaymentValidationError(
                "Term length must be a positive number of months",
                error_code="INVALID_TERM",
                details={"term_months": self.term_months},
            )
        if self.payment_type not in PaymentType.values:
            raise PaymentValidationError(
                f"Unknown payment type: {self.payment_type}",
                error_code="INVALID_PAYMENT_TYPE",
                details={"payment_type": self.payment_type},
            )
        if not self.currency:
            raise PaymentValidationError("Currency is required", error_code="INVALID_CURRENCY")


@dataclass
class InitiationResult:
    """
    Outcome of ``initiate``.

    ``payment_id`` is always set, also when the provider call failed, so
    the caller can inspect the payment or escalate to support.

    Attributes:
        payment_id: Id of the persisted Payment
        status: Payment status after initiation (processing or failed)
        checkout_request_id / merchant_request_id: Provider correlation ids
        message: Provider confirmation message, or the failure description
        error: The provider error when the charge was not accepted
    """

    payment_id: uuid.UUID
    status: str
    checkout_request_id: str | None = None
    merchant_request_id: str | None = None
    message: str = ""
    error: ProviderError | PaymentValidationError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ResolutionResult:
    """
    Outcome of ``resolve``.

    Attributes:
        payment: Payment as persisted after the call
        applied: False when the payment was already terminal and the call
            was a no-op
    """

    payment: Payment
    applied: bool


def account_reference(listing_id: uuid.UUID | str) -> str:
    """Account reference shown on the payer's phone, e.g. ``GEM1A2B3C4D``."""
    return ("GEM" + str(listing_id).replace("-", "")[:8]).upper()


def transaction_description(payment_type: str) -> str:
    return f"Hidden Gems - {payment_type.replace('_', ' ')}"


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Central coordinator for the payment lifecycle.

    All methods are class methods; no instance state is kept. Adapters come
    from payments.adapters.registry, so a new provider needs no change here.

    Concurrency:
        Callback, status poll and the sweep may race to resolve the same
        payment. ``resolve`` locks the payment row, re-reads its status and
        applies the transition and listing update in one transaction, so
        the first resolution wins and later ones are no-ops.
    """

    DEFAULT_FAILURE_DESCRIPTION = "Payment failed"

    @classmethod
    def initiate(cls, params: InitiatePaymentParams) -> InitiationResult:
        """
        Persist a pending payment, then ask the provider to charge it.

        Args:
            params: Payment initiation parameters

        Returns:
            InitiationResult. On provider failure the payment is FAILED with
            the provider's message and the result carries the error.

        Raises:
            PaymentValidationError: Unknown provider, missing or invalid
                contact. Raised before anything is persisted.
            NotFoundError: Listing does not exist
        """
        logger = cls.get_logger()
        adapter = get_adapter(params.provider)
        contact = adapter.validate_contact(params.contact)

        if not Listing.objects.filter(id=params.listing_id).exists():
            raise NotFoundError(
                "Listing not found",
                error_code="LISTING_NOT_FOUND",
                details={"listing_id": str(params.listing_id)},
            )

        term_start = timezone.now()
        term_end = term_start + relativedelta(months=params.term_months)

        payment = Payment.objects.create(
            listing_id=params.listing_id,
            payer_id=params.payer_id,
            amount=params.amount,
            currency=params.currency,
            payment_type=params.payment_type,
            tier=params.tier,
            provider=adapter.name,
            phone_number=contact,
            term_start=term_start,
            term_end=term_end,
            metadata=dict(params.metadata),
        )

        log_context = {
            "payment_id": str(payment.id),
            "listing_id": str(params.listing_id),
            "provider": adapter.name,
            "amount": params.amount,
            "payment_type": params.payment_type,
            "phone": mask_phone(contact),
        }
        logger.info("Initiating payment", extra=log_context)

        charge_request = ChargeRequest(
            contact=contact,
            amount=params.amount,
            reference=account_reference(params.listing_id),
            description=transaction_description(params.payment_type),
        )

        try:
            charge = adapter.charge(charge_request)
        except (ProviderError, PaymentValidationError) as e:
            payment.fail(reason=e.message)
            payment.save(
                update_fields=["status", "result_description", "failed_at", "updated_at"]
            )
            logger.warning(
                "Payment initiation failed",
                extra={**log_context, "error_code": e.error_code, "error": e.message},
            )
            return InitiationResult(
                payment_id=payment.id,
                status=payment.status,
                message=e.message,
                error=e,
            )

        with cls.atomic():
            payment = Payment.objects.select_for_update().get(id=payment.id)
            payment.submit(
                merchant_request_id=charge.merchant_request_id,
                checkout_request_id=charge.checkout_request_id,
            )
            payment.save(
                update_fields=[
                    "status",
                    "merchant_request_id",
                    "checkout_request_id",
                    "submitted_at",
                    "updated_at",
                ]
            )

        logger.info(
            "Payment submitted to provider",
            extra={**log_context, "checkout_request_id": charge.checkout_request_id},
        )
        return InitiationResult(
            payment_id=payment.id,
            status=payment.status,
            checkout_request_id=charge.checkout_request_id,
            merchant_request_id=charge.merchant_request_id,
            message=charge.confirmation_message,
        )

    @classmethod
    def resolve(
        cls,
        payment_id: uuid.UUID,
        outcome: str,
        provider_receipt: str | None = None,
        description: str | None = None,
        result_code: int | None = None,
        callback: CallbackData | None = None,
    ) -> ResolutionResult:
        """
        Apply the terminal outcome of a payment exactly once.

        On COMPLETED the listing's term window is activated (and its tier
        promoted for upgrades); on FAILED the listing is untouched. Moderation
        status is never changed. Signals go out after commit.

        Args:
            payment_id: Payment to resolve
            outcome: PaymentStatus.COMPLETED or PaymentStatus.FAILED
            provider_receipt: Provider transaction receipt
            description: Provider description (stored on failure)
            result_code: Provider result code
            callback: Decoded callback, for the confirmed amount/phone/time

        Returns:
            ResolutionResult; ``applied`` is False if the payment was already
            terminal

        Raises:
            PaymentValidationError: outcome is not completed/failed
            PaymentNotFoundError: Unknown payment id
            InvalidStateTransitionError: Payment was never submitted
        """
        if outcome not in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
            raise PaymentValidationError(
                f"Cannot resolve a payment to {outcome!r}",
                error_code="INVALID_OUTCOME",
                details={"outcome": str(outcome)},
            )
        logger = cls.get_logger()
        log_context = {"payment_id": str(payment_id), "outcome": str(outcome)}

        with cls.atomic():
            try:
                payment = Payment.objects.select_for_update().get(id=payment_id)
            except Payment.DoesNotExist:
                raise PaymentNotFoundError(
                    f"Payment {payment_id} not found",
                    details={"payment_id": str(payment_id)},
                ) from None

            if payment.is_terminal:
                if payment.status != outcome:
                    logger.warning(
                        "Ignoring conflicting resolution of a resolved payment",
                        extra={**log_context, "current_status": payment.status},
                    )
                else:
                    logger.info("Payment already resolved", extra=log_context)
                return ResolutionResult(payment=payment, applied=False)

            try:
                if outcome == PaymentStatus.COMPLETED:
                    cls._apply_completion(payment, provider_receipt, description, callback)
                    signal = payment_completed
                else:
                    payment.fail(
                        reason=description or cls.DEFAULT_FAILURE_DESCRIPTION,
                        result_code=result_code,
                    )
                    payment.save(
                        update_fields=[
                            "status",
                            "result_description",
                            "result_code",
                            "failed_at",
                            "updated_at",
                        ]
                    )
                    signal = payment_failed
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Cannot move payment from '{payment.status}' to '{outcome}'",
                    details={
                        "payment_id": str(payment.id),
                        "current_state": payment.status,
                        "target_state": str(outcome),
                    },
                ) from e

            transaction.on_commit(partial(cls._send_signal, signal, payment.id))

        logger.info("Payment resolved", extra={**log_context, "listing_id": str(payment.listing_id)})
        return ResolutionResult(payment=payment, applied=True)

    @classmethod
    def _apply_completion(
        cls,
        payment: Payment,
        provider_receipt: str | None,
        description: str | None,
        callback: CallbackData | None,
    ) -> None:
        payment.complete(receipt=provider_receipt, description=description)
        fields = [
            "status",
            "result_code",
            "provider_receipt",
            "result_description",
            "completed_at",
            "updated_at",
        ]
        if callback is not None:
            payment.confirmed_amount = callback.amount
            payment.confirmed_phone_number = callback.contact
            payment.provider_transaction_at = callback.transaction_timestamp
            fields += ["confirmed_amount", "confirmed_phone_number", "provider_transaction_at"]
        payment.save(update_fields=fields)

        listing = Listing.objects.select_for_update().get(id=payment.listing_id)
        promote_to = payment.tier if payment.payment_type == PaymentType.UPGRADE else None
        listing_fields = listing.apply_paid_term(payment.term_start, payment.term_end, tier=promote_to)
        listing.save(update_fields=listing_fields)

    @classmethod
    def _send_signal(cls, signal: Signal, payment_id: uuid.UUID) -> None:
        payment = Payment.objects.select_related("listing").get(id=payment_id)
        for receiver, response in signal.send_robust(sender=Payment, payment=payment):
            if isinstance(response, Exception):
                cls.get_logger().error(
                    "Payment signal receiver failed",
                    exc_info=response,
                    extra={"payment_id": str(payment_id), "receiver": repr(receiver)},
                )

    @classmethod
    def find_by_provider_correlation(cls, checkout_request_id: str) -> Payment:
        """
        Look up a payment by the provider's checkout request id.

        Raises:
            PaymentNotFoundError: No payment carries that id
        """
        try:
            return Payment.objects.get(checkout_request_id=checkout_request_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                "No payment matches the provider correlation id",
                error_code="CORRELATION_NOT_FOUND",
                details={"checkout_request_id": checkout_request_id},
            ) from None

    @classmethod
    def get_payment(cls, payment_id: uuid.UUID) -> Payment:
        """
        Raises:
            PaymentNotFoundError: Unknown payment id
        """
        try:
            return Payment.objects.get(id=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            ) from None

    @classmethod
    def check_status(cls, payment_id: uuid.UUID) -> Payment:
        """
        Return the payment, first asking the provider if it is still open.

        Serves the status endpoint polled by the confirmation loop. A
        provider failure during the query is logged and the persisted state
        returned, since the callback may still resolve the payment.

        Raises:
            PaymentNotFoundError: Unknown payment id
        """
        payment = cls.get_payment(payment_id)
        if payment.status != PaymentStatus.PROCESSING or not payment.checkout_request_id:
            return payment

        try:
            adapter = get_adapter(payment.provider)
            result = adapter.query_status(payment.checkout_request_id)
        except (ProviderError, PaymentValidationError) as e:
            cls.get_logger().warning(
                "Provider status query failed, returning stored status",
                extra={
                    "payment_id": str(payment.id),
                    "error_code": e.error_code,
                    "error": e.message,
                },
            )
            return payment

        if not result.is_terminal:
            return payment

        if result.outcome == ProviderOutcome.COMPLETED:
            resolution = cls.resolve(
                payment.id,
                PaymentStatus.COMPLETED,
                description=result.result_description,
                result_code=result.result_code,
            )
        else:
            resolution = cls.resolve(
                payment.id,
                PaymentStatus.FAILED,
                description=result.message or result.result_description,
                result_code=result.result_code,
            )
        return resolution.payment
