"""
Provider callback endpoint.

The view:
1. Rejects callers outside PAYMENT_CALLBACK_ALLOWED_IPS (when configured)
2. Hands the raw body to the handler, which decodes and resolves
3. Acknowledges in the provider's own response format

Processing is synchronous: resolution is a single row-locked transaction
and the provider expects an answer within seconds.

Usage:
    # In urls.py
    from payments.webhooks.views import provider_callback

    urlpatterns = [
        path("callbacks/<str:provider>/", provider_callback, name="provider-callback"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.helpers import get_client_ip
from payments.exceptions import (
    CallbackValidationError,
    InvalidStateTransitionError,
    PaymentValidationError,
)
from payments.webhooks.handlers import process_provider_callback

logger = logging.getLogger(__name__)


def _acknowledge(result_code: int, description: str, status: int = 200) -> JsonResponse:
    return JsonResponse({"ResultCode": result_code, "ResultDesc": description}, status=status)


def _is_allowed_source(request: HttpRequest) -> bool:
    allowed = getattr(settings, "PAYMENT_CALLBACK_ALLOWED_IPS", [])
    if not allowed:
        return True
    return get_client_ip(request) in allowed


@csrf_exempt
@require_http_methods(["GET", "POST"])
def provider_callback(request: HttpRequest, provider: str) -> JsonResponse:
    """
    Receive a payment provider's result callback.

    GET answers a liveness probe so the URL can be checked when it is
    registered with the provider.

    Returns:
        JsonResponse with status:
        - 200 {"ResultCode": 0, "ResultDesc": "Accepted"}: callback handled,
          including duplicates and unknown correlation ids
        - 400 {"ResultCode": 1, ...}: body failed strict decoding
        - 403: source address not allowed
        - 404: unknown provider
    """
    if request.method == "GET":
        return JsonResponse({"status": "OK"})

    if not _is_allowed_source(request):
        logger.warning(
            "Rejected callback from disallowed address",
            extra={"provider": provider, "ip": get_client_ip(request)},
        )
        return _acknowledge(1, "Forbidden", status=403)

    try:
        result = process_provider_callback(provider, request.body)
    except CallbackValidationError as e:
        logger.warning(
            "Rejected malformed callback",
            extra={"provider": provider, "error": e.message, "details": e.details},
        )
        return _acknowledge(1, e.message, status=400)
    except PaymentValidationError as e:
        logger.warning("Callback for unknown provider", extra={"provider": provider})
        return _acknowledge(1, e.message, status=404)
    except InvalidStateTransitionError as e:
        logger.error(
            "Callback could not be applied",
            extra={"provider": provider, "error": e.message, "details": e.details},
        )
        return _acknowledge(0, "Accepted")

    if result.success:
        logger.info(
            "Callback processed",
            extra={
                "provider": provider,
                "payment_id": str(result.data.payment_id),
                "applied": result.data.applied,
            },
        )
    return _acknowledge(0, "Accepted")
