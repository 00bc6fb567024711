"""
Provider callback handling.

Providers push the final result of a charge to a public URL. The view
here authenticates the caller by source address, hands the raw body to
the provider's adapter for strict decoding and resolves the payment
through the orchestrator.

Usage:
    # In urls.py
    from payments.webhooks.views import provider_callback

    urlpatterns = [
        path("callbacks/<str:provider>/", provider_callback, name="provider-callback"),
    ]
"""

from payments.webhooks.handlers import process_provider_callback
from payments.webhooks.views import provider_callback

__all__ = [
    "process_provider_callback",
    "provider_callback",
]
