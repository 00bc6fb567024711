"""
Payment model: one charge attempt for a listing term.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus, PaymentType

    payment = Payment.objects.create(
        listing=listing,
        payer=user,
        amount=500,
        payment_type=PaymentType.NEW_LISTING,
        provider="mpesa",
        phone_number="254712345678",
        term_start=now,
        term_end=now + relativedelta(months=6),
    )

    # State transitions using django-fsm
    payment.submit(merchant_request_id="29115-1", checkout_request_id="ws_CO_1")
    payment.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from listings.models import ListingTier
from payments.exceptions import InvalidStateTransitionError
from payments.state_machines import PaymentStatus, PaymentType


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single charge attempt and the term it buys.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED [-> REFUNDED]
        PENDING/PROCESSING -> FAILED

    Fields:
        listing: Listing the term is bought for
        payer: User paying
        amount: Whole currency units
        currency: ISO 4217 code
        payment_type: new_listing, renewal or upgrade
        tier: Tier the plan is priced at (applied to the listing on upgrade)
        provider: Registry name of the adapter used
        phone_number: Normalized payer contact, exactly as sent to the provider
        merchant_request_id/checkout_request_id: Provider correlation ids,
            set once by submit()
        status: Current FSM state
        result_code/result_description: Provider's final answer
        provider_receipt and confirmed_*: Data from the success callback
        term_start/term_end: Coverage window, fixed at creation
        *_at timestamps: When each transition happened

    Note:
        Failed payments are immutable history. A retry is a new Payment.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Listing this payment buys a term for",
    )

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User making the payment",
    )

    # ==========================================================================
    # Commercial Fields
    # ==========================================================================

    amount = models.PositiveIntegerField(
        help_text="Amount in whole currency units (M-Pesa rejects fractions)",
    )

    currency = models.CharField(
        max_length=3,
        default="KES",
        help_text="ISO 4217 currency code",
    )

    payment_type = models.CharField(
        max_length=20,
        choices=PaymentType.choices,
        help_text="What the payment buys (new listing, renewal, upgrade)",
    )

    tier = models.CharField(
        max_length=20,
        choices=ListingTier.choices,
        default=ListingTier.STANDARD,
        help_text="Plan tier the amount was priced at",
    )

    # ==========================================================================
    # Provider Fields
    # ==========================================================================

    provider = models.CharField(
        max_length=30,
        default="mpesa",
        help_text="Payment provider adapter name",
    )

    phone_number = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        help_text="Normalized payer phone number (2547XXXXXXXX)",
    )

    merchant_request_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Provider id assigned when the charge was accepted",
    )

    checkout_request_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider id used for status queries and callbacks",
    )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    # Not protected: refresh_from_db() must be able to reload it
    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    result_code = models.IntegerField(
        null=True,
        blank=True,
        help_text="Provider result code of the final answer",
    )

    result_description = models.TextField(
        null=True,
        blank=True,
        help_text="Human-readable outcome, populated on failure",
    )

    provider_receipt = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider transaction receipt (e.g. M-Pesa receipt number)",
    )

    provider_transaction_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider says the money moved",
    )

    confirmed_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount confirmed by the provider callback",
    )

    confirmed_phone_number = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        help_text="Phone number confirmed by the provider callback",
    )

    # ==========================================================================
    # Term
    # ==========================================================================

    term_start = models.DateTimeField(help_text="Start of the coverage window")

    term_end = models.DateTimeField(help_text="End of the coverage window")

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    submitted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "submitted_at"], name="payment_status_submitted_idx"),
            models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
            models.Index(fields=["listing", "status"], name="payment_listing_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(term_end__gt=models.F("term_start")),
                name="payment_term_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentStatus.terminal()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.PROCESSING,
    )
    def submit(self, merchant_request_id: str, checkout_request_id: str):
        """
        Record provider acceptance of the charge.

        Transition: PENDING -> PROCESSING

        Raises:
            InvalidStateTransitionError: Correlation ids were already set
        """
        if self.merchant_request_id or self.checkout_request_id:
            raise InvalidStateTransitionError(
                "Provider correlation ids are already assigned",
                error_code="CORRELATION_IDS_IMMUTABLE",
                details={"payment_id": str(self.id)},
            )
        self.merchant_request_id = merchant_request_id
        self.checkout_request_id = checkout_request_id
        self.submitted_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.PROCESSING,
        target=PaymentStatus.COMPLETED,
    )
    def complete(self, receipt: str | None = None, description: str | None = None):
        """
        Mark the charge as paid.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()
        self.result_code = 0
        if receipt:
            self.provider_receipt = receipt
        if description:
            self.result_description = description

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None, result_code: int | None = None):
        """
        Mark the charge as failed.

        Transition: PENDING/PROCESSING -> FAILED

        Args:
            reason: Failure description persisted for later inspection
            result_code: Provider result code, if the provider gave one
        """
        self.failed_at = timezone.now()
        if reason:
            self.result_description = reason
        if result_code is not None:
            self.result_code = result_code

    @transition(
        field=status,
        source=PaymentStatus.COMPLETED,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Mark a completed payment as refunded.

        Transition: COMPLETED -> REFUNDED

        Note:
            Moving the money back is handled outside this service.
        """
        self.refunded_at = timezone.now()
