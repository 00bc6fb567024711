"""
DRF serializers for the payments API.

This module provides serializers for:
- Payment initiation requests and responses
- Payment status responses for the confirmation loop

Related files:
    - views.py: Payment API views
    - plans.py: Plan price table
    - services/payment_orchestrator.py: Business logic

Usage:
    serializer = InitiatePaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from listings.models import ListingTier
from payments.models import Payment
from payments.plans import ALLOWED_TERM_MONTHS, TERM_MONTHS
from payments.state_machines import PaymentStatus, PaymentType


class InitiatePaymentSerializer(serializers.Serializer):
    """
    Request body for starting a payment.

    Fields:
        listing_id: Listing to buy a term for
        plan: Plan tier (standard or featured)
        term_months: 6 (one term) or 12 (one year)
        phone_number: Payer phone in any common Kenyan format
        payment_type: new_listing, renewal or upgrade

    Note:
        The amount is never taken from the client; the view prices the
        request from the plan table.
    """

    listing_id = serializers.UUIDField()
    plan = serializers.ChoiceField(choices=ListingTier.choices, default=ListingTier.STANDARD)
    term_months = serializers.ChoiceField(
        choices=[(m, f"{m} months") for m in ALLOWED_TERM_MONTHS],
        default=TERM_MONTHS,
    )
    phone_number = serializers.CharField(max_length=20, trim_whitespace=True)
    payment_type = serializers.ChoiceField(
        choices=PaymentType.choices, default=PaymentType.NEW_LISTING
    )

    def validate(self, attrs):
        if attrs["payment_type"] == PaymentType.UPGRADE and attrs["plan"] == ListingTier.STANDARD:
            raise serializers.ValidationError(
                {"plan": "Upgrades must be to a higher tier than standard."}
            )
        return attrs


class InitiatePaymentResponseSerializer(serializers.Serializer):
    """Response body for an accepted charge."""

    payment_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=PaymentStatus.choices)
    checkout_request_id = serializers.CharField(allow_null=True)
    message = serializers.CharField(allow_blank=True)


class PaymentFailedResponseSerializer(serializers.Serializer):
    """Response body when the provider refused or could not be reached."""

    payment_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=PaymentStatus.choices)
    error = serializers.CharField()


class PaymentStatusSerializer(serializers.ModelSerializer):
    """
    Payment status as polled by the confirmation loop.

    ``message`` is the provider's description when there is one, else a
    generic text for the current status.
    """

    receipt_number = serializers.CharField(source="provider_receipt", allow_null=True)
    message = serializers.SerializerMethodField()

    STATUS_MESSAGES = {
        PaymentStatus.PENDING: "Payment is being initiated",
        PaymentStatus.PROCESSING: "Waiting for payment confirmation",
        PaymentStatus.COMPLETED: "Payment completed",
        PaymentStatus.FAILED: "Payment failed",
        PaymentStatus.REFUNDED: "Payment refunded",
    }

    class Meta:
        model = Payment
        fields = ["id", "status", "provider", "receipt_number", "message", "created_at"]
        read_only_fields = fields

    def get_message(self, obj: Payment) -> str:
        if obj.status == PaymentStatus.FAILED and obj.result_description:
            return obj.result_description
        return self.STATUS_MESSAGES.get(obj.status, obj.status)
