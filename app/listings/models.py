"""
Listing model and its status enums.

Usage:
    from listings.models import Listing, ModerationStatus

    listing = Listing.objects.create(owner=user, name="Cafe Deli")
    listing.moderation_status = ModerationStatus.APPROVED
    listing.save(update_fields=["moderation_status", "updated_at"])

    # Billing fields are applied by the payment orchestrator
    fields = listing.apply_paid_term(start, end, tier=ListingTier.FEATURED)
    listing.save(update_fields=fields)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ModerationStatus(models.TextChoices):
    """Admin review outcome. Payments never write this field."""

    PENDING = "pending", "Pending review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class TermStatus(models.TextChoices):
    """
    Billing state of the listing.

    State Flow:
        INACTIVE → ACTIVE (first completed payment)
        ACTIVE → EXPIRED (term end passed, see listings.tasks)
        EXPIRED → ACTIVE (renewal)
    """

    INACTIVE = "inactive", "Inactive"
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"


class ListingTier(models.TextChoices):
    STANDARD = "standard", "Standard"
    FEATURED = "featured", "Featured"


class Listing(UUIDPrimaryKeyMixin, BaseModel):
    """
    A venue listing owned by a business owner.

    Fields:
        owner: User who submitted the listing and pays for its terms
        name: Display name of the venue
        location: Free-form area/address line
        moderation_status: Admin review state
        tier: Standard or featured placement
        term_status: Whether a paid term is currently running
        current_term_start/current_term_end: Coverage window of the last
            completed payment
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listings",
        help_text="Business owner of the listing",
    )

    name = models.CharField(max_length=200)

    location = models.CharField(max_length=255, blank=True, default="")

    moderation_status = models.CharField(
        max_length=20,
        choices=ModerationStatus.choices,
        default=ModerationStatus.PENDING,
        db_index=True,
    )

    tier = models.CharField(
        max_length=20,
        choices=ListingTier.choices,
        default=ListingTier.STANDARD,
    )

    # ==========================================================================
    # Paid Term (written by payments only)
    # ==========================================================================

    term_status = models.CharField(
        max_length=20,
        choices=TermStatus.choices,
        default=TermStatus.INACTIVE,
        db_index=True,
    )

    current_term_start = models.DateTimeField(null=True, blank=True)

    current_term_end = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Listing is hidden again once this passes",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["term_status", "current_term_end"],
                name="listing_term_status_end_idx",
            ),
            models.Index(
                fields=["owner", "moderation_status"],
                name="listing_owner_moderation_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Listing({self.id}, {self.name!r}, {self.moderation_status}/{self.term_status})"

    @property
    def is_approved(self) -> bool:
        return self.moderation_status == ModerationStatus.APPROVED

    @property
    def has_active_term(self) -> bool:
        """True while a paid term is running."""
        return (
            self.term_status == TermStatus.ACTIVE
            and self.current_term_end is not None
            and self.current_term_end > timezone.now()
        )

    def apply_paid_term(self, start, end, tier: str | None = None) -> list[str]:
        """
        Activate a paid coverage window.

        Moderation status is never written here.

        Args:
            start: Term start copied from the payment
            end: Term end copied from the payment
            tier: New tier for upgrades, None to keep the current one

        Returns:
            Field names to pass as ``update_fields``

        Note:
            Does not save; the caller owns the transaction.
        """
        self.current_term_start = start
        self.current_term_end = end
        self.term_status = TermStatus.ACTIVE
        fields = ["current_term_start", "current_term_end", "term_status", "updated_at"]
        if tier is not None:
            self.tier = tier
            fields.append("tier")
        return fields
