"""
Gateways the confirmation loop talks to.

A gateway starts a payment for a draft and reads back its status. Two
implementations are provided:

- OrchestratorGateway: in-process, calls PaymentOrchestrator directly
  (management commands, tests, server-side flows)
- HttpPaymentGateway: talks to the REST API with an access token (scripts,
  kiosk clients, end-to-end checks)

Usage:
    gateway = HttpPaymentGateway("https://api.example.com", access_token=token)
    loop = PaymentConfirmationLoop(gateway, draft)
    outcome = loop.start("0712345678")
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from core.exceptions import ExternalServiceError
from listings.models import ListingTier
from payments.exceptions import PaymentValidationError
from payments.plans import TERM_MONTHS, price_for
from payments.services import InitiatePaymentParams, PaymentOrchestrator
from payments.state_machines import PaymentStatus, PaymentType

if TYPE_CHECKING:
    from payments.models import Payment

logger = logging.getLogger(__name__)


# =============================================================================
# Gateway Types
# =============================================================================


@dataclass(frozen=True)
class PaymentDraft:
    """What the payer is about to buy. The contact is supplied at start."""

    listing_id: uuid.UUID
    plan: str = ListingTier.STANDARD
    term_months: int = TERM_MONTHS
    payment_type: str = PaymentType.NEW_LISTING


@dataclass
class GatewayInitiation:
    """
    Result of starting a payment.

    Attributes:
        payment_id: Always set, also when the provider refused the charge
        status: Payment status after initiation
        checkout_request_id: Provider correlation id, None on failure
        message: Provider confirmation message or failure description
    """

    payment_id: uuid.UUID
    status: str
    checkout_request_id: str | None = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.status != PaymentStatus.FAILED and bool(self.checkout_request_id)


@dataclass
class StatusSnapshot:
    """A single status read."""

    payment_id: uuid.UUID
    status: str
    message: str = ""
    receipt_number: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)

    @property
    def is_failed(self) -> bool:
        return self.status == PaymentStatus.FAILED


class PaymentGateway(Protocol):
    def initiate(self, draft: PaymentDraft, contact: str) -> GatewayInitiation:
        """
        Raises:
            PaymentValidationError: Request rejected before any provider call
            BaseApplicationError: Any other failure to start the payment
        """
        ...

    def fetch_status(self, payment_id: uuid.UUID) -> StatusSnapshot:
        ...


# =============================================================================
# In-Process Gateway
# =============================================================================


class OrchestratorGateway:
    """
    Gateway calling the orchestrator in the same process.

    Skips the HTTP layer, so listing ownership and moderation checks done
    by the initiate view are the caller's responsibility.

    Args:
        payer_id: User paying
        provider: Registry name of the provider adapter
    """

    def __init__(self, payer_id: Any, provider: str = "mpesa"):
        self.payer_id = payer_id
        self.provider = provider

    def initiate(self, draft: PaymentDraft, contact: str) -> GatewayInitiation:
        result = PaymentOrchestrator.initiate(
            InitiatePaymentParams(
                listing_id=draft.listing_id,
                payer_id=self.payer_id,
                amount=price_for(draft.plan, draft.term_months),
                payment_type=draft.payment_type,
                term_months=draft.term_months,
                provider=self.provider,
                contact=contact,
                tier=draft.plan,
            )
        )
        return GatewayInitiation(
            payment_id=result.payment_id,
            status=result.status,
            checkout_request_id=result.checkout_request_id,
            message=result.message,
        )

    def fetch_status(self, payment_id: uuid.UUID) -> StatusSnapshot:
        payment = PaymentOrchestrator.check_status(payment_id)
        return _snapshot_from_payment(payment)


def _snapshot_from_payment(payment: Payment) -> StatusSnapshot:
    return StatusSnapshot(
        payment_id=payment.id,
        status=payment.status,
        message=payment.result_description or "",
        receipt_number=payment.provider_receipt,
    )


# =============================================================================
# HTTP Gateway
# =============================================================================


class HttpPaymentGateway:
    """
    Gateway talking to the payments REST API.

    Args:
        base_url: API origin, e.g. ``https://api.example.com``
        access_token: JWT access token of the payer
        timeout: HTTP timeout per request, in seconds
        http_client: Pre-configured httpx.Client (tests pass one with a
            MockTransport)
    """

    INITIATE_PATH = "/api/v1/payments/initiate/"
    STATUS_PATH = "/api/v1/payments/{payment_id}/status/"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpPaymentGateway:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def initiate(self, draft: PaymentDraft, contact: str) -> GatewayInitiation:
        payload = {
            "listing_id": str(draft.listing_id),
            "plan": str(draft.plan),
            "term_months": draft.term_months,
            "phone_number": contact,
            "payment_type": str(draft.payment_type),
        }
        response = self._request("POST", self.INITIATE_PATH, json=payload)
        body = self._json(response)

        if response.status_code == 201:
            return GatewayInitiation(
                payment_id=uuid.UUID(body["payment_id"]),
                status=body["status"],
                checkout_request_id=body.get("checkout_request_id"),
                message=body.get("message", ""),
            )
        if response.status_code == 502 and body.get("payment_id"):
            return GatewayInitiation(
                payment_id=uuid.UUID(body["payment_id"]),
                status=body.get("status", PaymentStatus.FAILED),
                message=body.get("error", ""),
            )
        # Refusals (bad input, ownership, moderation) never reached the provider
        if 400 <= response.status_code < 500:
            raise PaymentValidationError(
                _error_message(body, "Invalid payment request"),
                error_code=body.get("error_code"),
                details={"status_code": response.status_code, "response": body},
            )
        raise ExternalServiceError(
            _error_message(body, f"Payment API returned {response.status_code}"),
            error_code=body.get("error_code") or "PAYMENT_API_ERROR",
            details={"status_code": response.status_code},
        )

    def fetch_status(self, payment_id: uuid.UUID) -> StatusSnapshot:
        response = self._request("GET", self.STATUS_PATH.format(payment_id=payment_id))
        body = self._json(response)
        if response.status_code != 200:
            raise ExternalServiceError(
                _error_message(body, f"Payment API returned {response.status_code}"),
                error_code=body.get("error_code") or "PAYMENT_API_ERROR",
                details={"status_code": response.status_code, "payment_id": str(payment_id)},
            )
        return StatusSnapshot(
            payment_id=uuid.UUID(str(body["id"])),
            status=body["status"],
            message=body.get("message") or "",
            receipt_number=body.get("receipt_number"),
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        start = time.monotonic()
        try:
            response = self._client.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                f"Payment API unreachable: {e}",
                error_code="PAYMENT_API_UNAVAILABLE",
                details={"path": path},
            ) from e
        logger.debug(
            "Payment API call completed",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


def _error_message(body: dict[str, Any], default: str) -> str:
    if isinstance(body.get("error"), str):
        return body["error"]
    if isinstance(body.get("detail"), str):
        return body["detail"]
    return default
