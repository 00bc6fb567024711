"""
Payments app configuration.

This app owns the listing payment lifecycle:
- Provider adapters (M-Pesa STK push)
- Payment orchestration and reconciliation
- Provider callback endpoint
- Stale payment sweep
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Connect signal receivers
        from payments import signals  # noqa: F401
