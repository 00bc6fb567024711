"""
M-Pesa (Safaricom Daraja) STK push adapter.

Encapsulates the Lipa Na M-Pesa Online protocol:
- OAuth client-credentials exchange for a bearer token (cached)
- STK push to prompt the payer's phone for their PIN
- STK push query for the result of an earlier push
- Decoding of the result callback Safaricom posts to MPESA_CALLBACK_URL

Configuration (via settings):
- MPESA_ENV: "sandbox" or "production"
- MPESA_CONSUMER_KEY / MPESA_CONSUMER_SECRET: Daraja app credentials
- MPESA_SHORTCODE / MPESA_PASSKEY: Paybill number and its passkey
- MPESA_CALLBACK_URL: Public HTTPS URL for result callbacks
- MPESA_TIMEOUT_SECONDS: HTTP timeout per call (default: 10)
- MPESA_TOKEN_SAFETY_MARGIN_SECONDS: Token expiry margin (default: 60)

Usage:
    from payments.adapters import ChargeRequest, get_adapter

    adapter = get_adapter("mpesa")
    result = adapter.charge(
        ChargeRequest(
            contact="0712345678",
            amount=500,
            reference="GEM1A2B3C4D",
            description="Hidden Gems - new listing",
        )
    )
    status = adapter.query_status(result.checkout_request_id)
"""

from __future__ import annotations

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

import httpx
from django.conf import settings
from django.utils import timezone

from core.helpers import mask_phone
from payments.adapters.base import (
    CallbackData,
    ChargeRequest,
    ChargeResult,
    PaymentProviderAdapter,
    ProviderOutcome,
    StatusQueryResult,
)
from payments.adapters.mpesa_schemas import StkCallbackEnvelopeSerializer
from payments.adapters.token_cache import (
    AccessToken,
    TokenCache,
    token_cache_from_settings,
)
from payments.exceptions import (
    CallbackValidationError,
    PaymentValidationError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}

OAUTH_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"

ACCEPTED_RESPONSE_CODE = "0"
SUCCESS_RESULT_CODE = 0
CANCELLED_BY_USER_RESULT_CODE = 1032
# Query answers "1" while the payer has not yet acted on the prompt
STILL_PENDING_RESULT_CODES = frozenset({1})
# HTTP 500 errorCode meaning "The transaction is being processed"
STILL_PROCESSING_ERROR_CODE = "500.001.1001"

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

COUNTRY_CODE = "254"
CANONICAL_PHONE_RE = re.compile(r"^254[17]\d{8}$")
_PHONE_PUNCTUATION_RE = re.compile(r"[\s\-().+]")


def normalize_phone_number(raw: str) -> str:
    """
    Canonicalize a Kenyan mobile number to ``2547XXXXXXXX`` form.

    Strips whitespace and punctuation, then:
    - ``+254...`` / ``254...`` are kept as ``254...``
    - a leading trunk ``0`` is replaced by ``254``
    - a bare subscriber number starting with 7 or 1 gets ``254`` prepended

    The function is idempotent; anything it cannot recognize is returned
    cleaned but otherwise unchanged, and fails validation afterwards.

    Example:
        normalize_phone_number("0712 345 678")  # "254712345678"
        normalize_phone_number("+254712345678")  # "254712345678"
    """
    cleaned = _PHONE_PUNCTUATION_RE.sub("", raw or "")
    if cleaned.startswith(COUNTRY_CODE):
        return cleaned
    if cleaned.startswith("0"):
        return COUNTRY_CODE + cleaned[1:]
    if cleaned[:1] in ("7", "1"):
        return COUNTRY_CODE + cleaned
    return cleaned


def round_to_whole_units(amount: Decimal | int | float) -> int:
    """Round half-up to whole shillings; Daraja rejects fractional amounts."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise PaymentValidationError(
            "Amount must be a number",
            error_code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        ) from e
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class MpesaConfig:
    """
    Daraja credentials and tunables.

    Attributes:
        consumer_key / consumer_secret: App credentials for the OAuth call
        shortcode: Paybill or till number receiving the money
        passkey: Lipa Na M-Pesa Online passkey for the shortcode
        callback_url: Where Safaricom posts the STK result
        environment: "sandbox" or "production"
        transaction_type: CustomerPayBillOnline or CustomerBuyGoodsOnline
        timezone: Zone the password timestamp is rendered in
        timeout_seconds: HTTP timeout for every Daraja call
        token_safety_margin_seconds: Subtracted from the token lifetime
    """

    consumer_key: str
    consumer_secret: str
    shortcode: str
    passkey: str
    callback_url: str
    environment: str = "sandbox"
    transaction_type: str = "CustomerPayBillOnline"
    timezone: str = "Africa/Nairobi"
    timeout_seconds: float = 10.0
    token_safety_margin_seconds: int = 60

    def __post_init__(self) -> None:
        if self.environment not in BASE_URLS:
            raise ValueError(
                f"environment must be one of {sorted(BASE_URLS)}, got {self.environment!r}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def base_url(self) -> str:
        return BASE_URLS[self.environment]

    @classmethod
    def from_settings(cls) -> MpesaConfig:
        return cls(
            consumer_key=settings.MPESA_CONSUMER_KEY,
            consumer_secret=settings.MPESA_CONSUMER_SECRET,
            shortcode=str(settings.MPESA_SHORTCODE),
            passkey=settings.MPESA_PASSKEY,
            callback_url=settings.MPESA_CALLBACK_URL,
            environment=settings.MPESA_ENV,
            transaction_type=settings.MPESA_TRANSACTION_TYPE,
            timezone=settings.MPESA_TIMEZONE,
            timeout_seconds=settings.MPESA_TIMEOUT_SECONDS,
            token_safety_margin_seconds=settings.MPESA_TOKEN_SAFETY_MARGIN_SECONDS,
        )


# =============================================================================
# Adapter
# =============================================================================


class MpesaAdapter(PaymentProviderAdapter):
    """
    Daraja STK push adapter.

    All collaborators are injectable so tests can drive the adapter with
    an ``httpx.MockTransport``, a pre-seeded token cache and a frozen
    clock.

    Args:
        config: Daraja credentials and tunables
        token_cache: Where access tokens are kept (per-process by default)
        http_client: httpx client used for every call
        clock: Returns the current aware datetime
    """

    name = "mpesa"
    requires_contact = True

    def __init__(
        self,
        config: MpesaConfig,
        token_cache: TokenCache | None = None,
        http_client: httpx.Client | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self.token_cache = token_cache if token_cache is not None else token_cache_from_settings()
        self._client = http_client or httpx.Client(timeout=config.timeout_seconds)
        self._clock = clock or timezone.now

    @classmethod
    def from_settings(cls) -> MpesaAdapter:
        return cls(MpesaConfig.from_settings())

    @property
    def token_cache_key(self) -> str:
        return f"mpesa:{self.config.environment}:{self.config.shortcode}"

    # -------------------------------------------------------------------------
    # Contact handling
    # -------------------------------------------------------------------------

    def normalize_contact(self, contact: str) -> str:
        return normalize_phone_number(contact)

    def is_valid_contact(self, normalized: str) -> bool:
        return bool(CANONICAL_PHONE_RE.match(normalized))

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def get_access_token(self) -> str:
        """
        Return a cached bearer token, exchanging credentials when expired.

        Raises:
            ProviderAuthenticationError: Credentials rejected
            ProviderUnavailableError: Daraja unreachable or 5xx
            ProviderTimeoutError: Exchange timed out
        """
        now = self._clock()
        cached = self.token_cache.get(self.token_cache_key)
        if cached is not None and cached.is_valid(now):
            return cached.value

        credentials = base64.b64encode(
            f"{self.config.consumer_key}:{self.config.consumer_secret}".encode()
        ).decode()
        log_context = {"operation": "get_access_token", "environment": self.config.environment}

        response = self._send(
            "GET",
            OAUTH_PATH,
            log_context,
            params={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {credentials}"},
        )
        if response.status_code >= 400 and response.status_code < 500:
            raise ProviderAuthenticationError(
                f"Failed to get M-Pesa access token: {self._error_message(response)}",
                provider=self.name,
                operation="get_access_token",
                provider_code=str(response.status_code),
                provider_message=self._error_message(response),
            )
        self._raise_for_status(response, "get_access_token", "Failed to get M-Pesa access token")

        data = self._json(response, "get_access_token")
        try:
            value = data["access_token"]
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                "Malformed M-Pesa token response",
                provider=self.name,
                operation="get_access_token",
            ) from e

        expires_at = now + timedelta(
            seconds=expires_in - self.config.token_safety_margin_seconds
        )
        self.token_cache.set(self.token_cache_key, AccessToken(value=value, expires_at=expires_at))
        logger.info(
            "M-Pesa access token refreshed",
            extra={**log_context, "expires_at": expires_at.isoformat()},
        )
        return value

    # -------------------------------------------------------------------------
    # STK push
    # -------------------------------------------------------------------------

    def build_password(self, timestamp: str) -> str:
        """base64(shortcode + passkey + timestamp), as Daraja expects."""
        raw = f"{self.config.shortcode}{self.config.passkey}{timestamp}"
        return base64.b64encode(raw.encode()).decode()

    def current_timestamp(self) -> str:
        """Render now as ``YYYYMMDDHHMMSS`` in the configured zone."""
        return self._clock().astimezone(ZoneInfo(self.config.timezone)).strftime(TIMESTAMP_FORMAT)

    def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Send an STK push to the payer's phone.

        Args:
            request: Contact, amount, account reference and description

        Returns:
            ChargeResult carrying MerchantRequestID and CheckoutRequestID

        Raises:
            PaymentValidationError: Phone number missing or invalid
            ProviderRequestError: Daraja answered with a non-zero ResponseCode
                or a 4xx
            ProviderUnavailableError / ProviderTimeoutError: transport issues
        """
        phone = self.validate_contact(request.contact)
        amount = round_to_whole_units(request.amount)
        if amount <= 0:
            raise PaymentValidationError(
                "Amount must be at least 1 after rounding",
                error_code="INVALID_AMOUNT",
                details={"amount": str(request.amount)},
            )

        token = self.get_access_token()
        timestamp = self.current_timestamp()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": self.config.transaction_type,
            "Amount": amount,
            "PartyA": phone,
            "PartyB": self.config.shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self.config.callback_url,
            "AccountReference": request.reference,
            "TransactionDesc": request.description,
        }
        log_context = {
            "operation": "charge",
            "amount": amount,
            "reference": request.reference,
            "phone": mask_phone(phone),
        }

        response = self._send(
            "POST",
            STK_PUSH_PATH,
            log_context,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        self._raise_for_status(response, "charge", "STK Push failed")
        data = self._json(response, "charge")

        response_code = str(data.get("ResponseCode", ""))
        if response_code != ACCEPTED_RESPONSE_CODE:
            description = data.get("ResponseDescription") or "Unknown error"
            logger.warning(
                "M-Pesa rejected STK push",
                extra={**log_context, "response_code": response_code},
            )
            raise ProviderRequestError(
                f"STK Push error: {description}",
                provider=self.name,
                operation="charge",
                provider_code=response_code,
                provider_message=description,
            )

        try:
            return ChargeResult(
                merchant_request_id=data["MerchantRequestID"],
                checkout_request_id=data["CheckoutRequestID"],
                confirmation_message=data.get("CustomerMessage", ""),
                raw_response=data,
            )
        except KeyError as e:
            raise ProviderError(
                "Malformed M-Pesa STK push response",
                provider=self.name,
                operation="charge",
                provider_message=f"missing {e.args[0]}",
            ) from e

    # -------------------------------------------------------------------------
    # STK query
    # -------------------------------------------------------------------------

    def interpret_result_code(self, result_code: int | None) -> ProviderOutcome:
        if result_code is None or result_code in STILL_PENDING_RESULT_CODES:
            return ProviderOutcome.PENDING
        if result_code == SUCCESS_RESULT_CODE:
            return ProviderOutcome.COMPLETED
        return ProviderOutcome.FAILED

    def describe_failure(self, result_code: int | None, description: str) -> str:
        if result_code == CANCELLED_BY_USER_RESULT_CODE:
            return "Payment cancelled by user"
        return description

    def query_status(self, checkout_request_id: str) -> StatusQueryResult:
        """
        Query the result of an STK push.

        A push still waiting on the payer is reported as PENDING. Daraja
        signals this either with ResultCode 1 or with an HTTP 500 carrying
        errorCode 500.001.1001.

        Raises:
            ProviderError subclasses on transport or protocol failure
        """
        token = self.get_access_token()
        timestamp = self.current_timestamp()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        log_context = {"operation": "query_status", "checkout_request_id": checkout_request_id}

        response = self._send(
            "POST",
            STK_QUERY_PATH,
            log_context,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )

        error_body = self._error_body(response)
        if error_body.get("errorCode") == STILL_PROCESSING_ERROR_CODE:
            return StatusQueryResult(
                result_code=None,
                result_description=error_body.get("errorMessage", ""),
                outcome=ProviderOutcome.PENDING,
                raw_response=error_body,
            )
        self._raise_for_status(response, "query_status", "STK query failed")
        data = self._json(response, "query_status")

        try:
            result_code = int(data["ResultCode"]) if data.get("ResultCode") is not None else None
        except (TypeError, ValueError) as e:
            raise ProviderError(
                "Malformed M-Pesa query response",
                provider=self.name,
                operation="query_status",
                provider_message=str(data.get("ResultCode")),
            ) from e
        description = data.get("ResultDesc", "")
        outcome = self.interpret_result_code(result_code)

        logger.info(
            "M-Pesa status query answered",
            extra={**log_context, "result_code": result_code, "outcome": outcome.value},
        )
        return StatusQueryResult(
            result_code=result_code,
            result_description=description,
            outcome=outcome,
            message=self.describe_failure(result_code, description),
            raw_response=data,
        )

    # -------------------------------------------------------------------------
    # Callback
    # -------------------------------------------------------------------------

    def parse_callback(self, body: bytes | str | dict[str, Any]) -> CallbackData:
        """
        Decode an STK result callback, failing closed on any shape mismatch.

        Raises:
            CallbackValidationError: Not JSON, wrong structure, or a success
                code without the metadata that must accompany it
        """
        if isinstance(body, (bytes, str)):
            try:
                payload = json.loads(body)
            except (TypeError, ValueError) as e:
                raise CallbackValidationError(
                    "Callback body is not valid JSON",
                    provider=self.name,
                    operation="parse_callback",
                ) from e
        else:
            payload = body

        serializer = StkCallbackEnvelopeSerializer(data=payload)
        if not serializer.is_valid():
            raise CallbackValidationError(
                "Invalid callback structure",
                provider=self.name,
                operation="parse_callback",
                details={"errors": serializer.errors},
            )

        callback = serializer.validated_data["Body"]["stkCallback"]
        result_code = callback["ResultCode"]
        data = CallbackData(
            merchant_request_id=callback["MerchantRequestID"],
            checkout_request_id=callback["CheckoutRequestID"],
            result_code=result_code,
            result_description=callback["ResultDesc"],
            raw_payload=payload,
        )
        if result_code != SUCCESS_RESULT_CODE:
            return data

        items = {
            item["Name"]: item.get("Value")
            for item in callback.get("CallbackMetadata", {}).get("Item", [])
        }
        receipt = items.get("MpesaReceiptNumber")
        if not receipt:
            raise CallbackValidationError(
                "Success callback is missing its transaction metadata",
                provider=self.name,
                operation="parse_callback",
                error_code="CALLBACK_METADATA_MISSING",
                details={"checkout_request_id": data.checkout_request_id},
            )

        data.provider_receipt = str(receipt)
        data.amount = self._metadata_amount(items.get("Amount"), data)
        data.transaction_timestamp = self._metadata_timestamp(items.get("TransactionDate"), data)
        if items.get("PhoneNumber") is not None:
            data.contact = normalize_phone_number(str(items["PhoneNumber"]))
        return data

    def _metadata_amount(self, value: Any, data: CallbackData) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise CallbackValidationError(
                "Callback Amount is not a number",
                provider=self.name,
                operation="parse_callback",
                details={"checkout_request_id": data.checkout_request_id},
            ) from e

    def _metadata_timestamp(self, value: Any, data: CallbackData) -> datetime | None:
        if value is None:
            return None
        try:
            naive = datetime.strptime(str(value), TIMESTAMP_FORMAT)
        except ValueError as e:
            raise CallbackValidationError(
                "Callback TransactionDate is malformed",
                provider=self.name,
                operation="parse_callback",
                details={"checkout_request_id": data.checkout_request_id},
            ) from e
        return naive.replace(tzinfo=ZoneInfo(self.config.timezone))

    # -------------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Perform one Daraja call, translating transport failures.

        Raises:
            ProviderTimeoutError: No response within timeout_seconds
            ProviderUnavailableError: Connection/DNS/TLS failure
        """
        operation = log_context["operation"]
        start_time = time.monotonic()
        logger.info("Starting M-Pesa operation", extra=log_context)

        try:
            response = self._client.request(
                method,
                f"{self.config.base_url}{path}",
                timeout=self.config.timeout_seconds,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "M-Pesa request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise ProviderTimeoutError(
                f"M-Pesa {operation} timed out after {self.config.timeout_seconds}s",
                provider=self.name,
                operation=operation,
            ) from e
        except httpx.RequestError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "M-Pesa request failed",
                extra={**log_context, "duration_ms": duration_ms, "error": str(e)},
            )
            raise ProviderUnavailableError(
                f"M-Pesa {operation} failed: {e}",
                provider=self.name,
                operation=operation,
                provider_message=str(e),
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "M-Pesa operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response

    def _raise_for_status(self, response: httpx.Response, operation: str, prefix: str) -> None:
        if response.is_success:
            return

        message = self._error_message(response)
        error_code = self._error_body(response).get("errorCode")
        if response.status_code in (401, 403):
            self.token_cache.invalidate(self.token_cache_key)
            raise ProviderAuthenticationError(
                f"{prefix}: {message}",
                provider=self.name,
                operation=operation,
                provider_code=error_code or str(response.status_code),
                provider_message=message,
            )
        error_class = ProviderUnavailableError if response.status_code >= 500 else ProviderRequestError
        raise error_class(
            f"{prefix}: {message}",
            provider=self.name,
            operation=operation,
            provider_code=error_code or str(response.status_code),
            provider_message=message,
        )

    def _json(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"M-Pesa {operation} returned a non-JSON body",
                provider=self.name,
                operation=operation,
                provider_message=response.text[:200],
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"M-Pesa {operation} returned an unexpected body",
                provider=self.name,
                operation=operation,
            )
        return data

    @staticmethod
    def _error_body(response: httpx.Response) -> dict[str, Any]:
        if response.is_success:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _error_message(self, response: httpx.Response) -> str:
        body = self._error_body(response)
        return body.get("errorMessage") or response.text or f"HTTP {response.status_code}"
