"""
Client-side payment confirmation.

Usage:
    from payments.polling import (
        HttpPaymentGateway,
        PaymentConfirmationLoop,
        PaymentDraft,
    )

    with HttpPaymentGateway(api_url, access_token=token) as gateway:
        loop = PaymentConfirmationLoop(gateway, PaymentDraft(listing_id=listing_id))
        outcome = loop.start("0712345678")
"""

from payments.polling.loop import (
    CONFIRMATION_TIMEOUT_SECONDS,
    POLL_INTERVAL_SECONDS,
    FailureKind,
    LoopOutcome,
    LoopState,
    PaymentConfirmationLoop,
    is_valid_contact,
)
from payments.polling.scheduler import CancellationToken, Clock, SystemClock, Ticker
from payments.polling.sources import (
    GatewayInitiation,
    HttpPaymentGateway,
    OrchestratorGateway,
    PaymentDraft,
    PaymentGateway,
    StatusSnapshot,
)

__all__ = [
    "CONFIRMATION_TIMEOUT_SECONDS",
    "POLL_INTERVAL_SECONDS",
    "CancellationToken",
    "Clock",
    "FailureKind",
    "GatewayInitiation",
    "HttpPaymentGateway",
    "LoopOutcome",
    "LoopState",
    "OrchestratorGateway",
    "PaymentConfirmationLoop",
    "PaymentDraft",
    "PaymentGateway",
    "StatusSnapshot",
    "SystemClock",
    "Ticker",
    "is_valid_contact",
]
