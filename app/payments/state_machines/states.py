"""
State and choice enums for payment models.

Payment States:
    pending → processing → completed → refunded
    pending → failed (provider call failed before acceptance)
    processing → failed (declined, cancelled or expired)

``pending`` means "not yet accepted by the provider"; ``processing``
means "provider accepted the charge and is waiting for the payer".
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: COMPLETED, FAILED (REFUNDED follows COMPLETED only).
    No transition runs backward; a failed payment is retried by creating
    a new Payment.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        return frozenset({cls.COMPLETED, cls.FAILED, cls.REFUNDED})


class PaymentType(models.TextChoices):
    """What the payment buys for the listing."""

    NEW_LISTING = "new_listing", "New listing"
    RENEWAL = "renewal", "Renewal"
    UPGRADE = "upgrade", "Upgrade"
