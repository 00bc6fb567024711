"""
Payment admin configuration.

Payments are read-only in the admin: state changes go through the
orchestrator, never through form edits.
"""

from django.contrib import admin

from payments.models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into charge attempts, their provider correlation
    ids and the term each one bought.
    """

    list_display = [
        "id",
        "listing",
        "payer",
        "amount_display",
        "payment_type",
        "status",
        "provider",
        "provider_receipt",
        "created_at",
    ]
    list_filter = ["status", "payment_type", "provider", "tier", "created_at"]
    search_fields = [
        "id",
        "checkout_request_id",
        "merchant_request_id",
        "provider_receipt",
        "payer__email",
        "listing__name",
    ]
    readonly_fields = [
        "id",
        "listing",
        "payer",
        "amount",
        "currency",
        "payment_type",
        "tier",
        "provider",
        "phone_number",
        "merchant_request_id",
        "checkout_request_id",
        "status",
        "result_code",
        "result_description",
        "provider_receipt",
        "provider_transaction_at",
        "confirmed_amount",
        "confirmed_phone_number",
        "term_start",
        "term_end",
        "submitted_at",
        "completed_at",
        "failed_at",
        "refunded_at",
        "metadata",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "listing", "payer", "status"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency", "payment_type", "tier", "term_start", "term_end"),
            },
        ),
        (
            "Provider",
            {
                "fields": (
                    "provider",
                    "phone_number",
                    "merchant_request_id",
                    "checkout_request_id",
                    "result_code",
                    "result_description",
                ),
            },
        ),
        (
            "Confirmation",
            {
                "fields": (
                    "provider_receipt",
                    "provider_transaction_at",
                    "confirmed_amount",
                    "confirmed_phone_number",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": ("submitted_at", "completed_at", "failed_at", "refunded_at"),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return f"{obj.amount} {obj.currency}"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False
