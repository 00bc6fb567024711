"""
Callback handler: decoded provider callback -> payment resolution.

The handler is provider-agnostic. Decoding is delegated to the adapter
registered under the provider name in the URL, correlation and the state
change to the orchestrator.

Usage:
    from payments.webhooks.handlers import process_provider_callback

    result = process_provider_callback("mpesa", request.body)
    if result.success and result.data.applied:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from core.services import ServiceResult
from payments.adapters import ProviderOutcome, get_adapter
from payments.exceptions import PaymentNotFoundError
from payments.services import PaymentOrchestrator
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class CallbackOutcome:
    """
    What a callback did.

    Attributes:
        checkout_request_id: Provider correlation id from the callback
        payment_id: Matched payment, or None if no payment carries the id
        applied: True if this callback resolved the payment
    """

    checkout_request_id: str
    payment_id: Any = None
    applied: bool = False


def process_provider_callback(
    provider: str, body: bytes | str | dict[str, Any]
) -> ServiceResult[CallbackOutcome]:
    """
    Decode a provider callback and resolve the matching payment.

    Args:
        provider: Registry name from the callback URL
        body: Raw request body

    Returns:
        ServiceResult with a CallbackOutcome. Unknown correlation ids are
        a failure with error_code CORRELATION_NOT_FOUND; the caller still
        acknowledges them so the provider stops retrying.

    Raises:
        CallbackValidationError: Body failed strict decoding
        PaymentValidationError: Unknown provider
        InvalidStateTransitionError: Matched payment was never submitted
    """
    adapter = get_adapter(provider)
    callback = adapter.parse_callback(body)

    log_context = {
        "provider": provider,
        "checkout_request_id": callback.checkout_request_id,
        "result_code": callback.result_code,
    }
    logger.info("Received provider callback", extra=log_context)

    try:
        payment = PaymentOrchestrator.find_by_provider_correlation(callback.checkout_request_id)
    except PaymentNotFoundError as e:
        # Can happen if the callback beats the commit of submit(); the
        # status poll or stale sweep picks the payment up later.
        logger.warning("Callback for unknown payment", extra=log_context)
        return ServiceResult.failure(
            e.message,
            error_code=e.error_code,
            data=CallbackOutcome(checkout_request_id=callback.checkout_request_id),
        )

    if callback.outcome == ProviderOutcome.COMPLETED:
        resolution = PaymentOrchestrator.resolve(
            payment.id,
            PaymentStatus.COMPLETED,
            provider_receipt=callback.provider_receipt,
            result_code=callback.result_code,
            callback=callback,
        )
    else:
        resolution = PaymentOrchestrator.resolve(
            payment.id,
            PaymentStatus.FAILED,
            description=callback.result_description,
            result_code=callback.result_code,
            callback=callback,
        )

    return ServiceResult.success(
        CallbackOutcome(
            checkout_request_id=callback.checkout_request_id,
            payment_id=payment.id,
            applied=resolution.applied,
        )
    )
