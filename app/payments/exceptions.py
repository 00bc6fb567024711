"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain, not raised directly)
    PaymentValidationError - Bad input, no provider call made (ValidationError)
    PaymentNotFoundError - Unknown payment or correlation id (NotFoundError)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError)
    ProviderError - Provider call failed or was rejected (ExternalServiceError)
    ├── ProviderRequestError - Provider rejected the request (permanent)
    ├── ProviderAuthenticationError - Credential exchange failed (permanent)
    ├── ProviderUnavailableError - Network failure or 5xx (transient, retry)
    ├── ProviderTimeoutError - No response within the timeout (transient)
    └── CallbackValidationError - Inbound callback failed schema decode
    PaymentConfirmationTimeoutError - Client gave up waiting for resolution
    PaymentDeclinedError - Provider reported the charge as failed

Every ProviderError carries the provider name, the operation that failed
and the provider's own message verbatim in ``details``, so the orchestrator
can persist a useful failure description without re-contacting the
provider.

Usage:
    from payments.exceptions import ProviderRequestError

    raise ProviderRequestError(
        "STK Push error: Invalid PhoneNumber",
        provider="mpesa",
        operation="charge",
        provider_code="1",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Marker base for payment errors that are not one of the core categories.

    Example:
        try:
            outcome.raise_for_failure()
        except PaymentError as e:
            show_banner(e.message)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(ValidationError):
    """
    Raised when a payment request is invalid before any provider call.

    Use for:
    - Missing payer contact for a provider that requires one
    - Contact that does not normalize to a valid mobile number
    - Non-positive amount or term length
    - Unknown provider name or plan

    Example:
        raise PaymentValidationError(
            "Phone number is required for M-Pesa payments",
            error_code="CONTACT_REQUIRED",
            details={"provider": "mpesa"},
        )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentNotFoundError(NotFoundError):
    """
    Raised when a payment lookup by id or provider correlation id fails.
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a payment state transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed (and correlation-id reassignment)
    so callers only deal with the application hierarchy.

    Example:
        raise InvalidStateTransitionError(
            "Cannot complete payment from 'failed' state",
            details={"current_state": "failed", "target_state": "completed"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Provider Exceptions
# =============================================================================


class ProviderError(ExternalServiceError):
    """
    Base exception for payment provider failures.

    Attributes:
        provider: Registry name of the provider (e.g. "mpesa")
        operation: Adapter operation that failed (get_access_token, charge,
            query_status, parse_callback)
        provider_code: Provider's own result/error code, if any
        provider_message: Provider's own human-readable message, if any
        is_retryable: True for transient failures the caller may retry

    Note:
        The orchestrator never retries automatically. ``is_retryable`` is
        a hint for the caller and for the stale-payment sweep.
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: str = "",
        operation: str = "",
        provider_code: str | None = None,
        provider_message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if provider:
            details["provider"] = provider
        if operation:
            details["operation"] = operation
        if provider_code is not None:
            details["provider_code"] = provider_code
        if provider_message:
            details["provider_message"] = provider_message
        super().__init__(message, error_code=error_code, details=details)
        self.provider = provider
        self.operation = operation
        self.provider_code = provider_code
        self.provider_message = provider_message


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class ProviderRequestError(ProviderError):
    """
    Provider answered but refused the request.

    For M-Pesa this covers a non-zero ``ResponseCode`` on STK push and 4xx
    responses (bad shortcode, malformed phone number, wrong amount).
    Retrying with the same input will fail again.
    """

    default_error_code: str = "PROVIDER_REJECTED"
    is_retryable: bool = False


class ProviderAuthenticationError(ProviderError):
    """
    Credential exchange with the provider failed.

    Usually a wrong consumer key/secret or an app not subscribed to the
    product. Needs operator action, so it is not retryable.
    """

    default_error_code: str = "PROVIDER_AUTH_FAILED"
    is_retryable: bool = False


class CallbackValidationError(ProviderError):
    """
    Inbound provider callback failed strict schema validation.

    Raised instead of a KeyError/TypeError on field access. The webhook
    view answers 400 and leaves the payment untouched; the status-query
    path reconciles it instead.

    Example:
        except CallbackValidationError as e:
            logger.warning("Rejected callback", extra={"errors": e.details})
    """

    default_error_code: str = "INVALID_CALLBACK"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class ProviderUnavailableError(ProviderError):
    """
    Provider could not be reached or answered with a 5xx.

    Covers connection errors, DNS/TLS failures and server errors.
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"
    is_retryable: bool = True


class ProviderTimeoutError(ProviderError):
    """
    Provider call exceeded the configured HTTP timeout.

    IMPORTANT: for ``charge`` the STK prompt may still have reached the
    payer's phone. The payment is failed locally; a late callback for it
    cannot be correlated because no checkout id was recorded.
    """

    default_error_code: str = "PROVIDER_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Client Reconciliation Exceptions
# =============================================================================


class PaymentConfirmationTimeoutError(PaymentError):
    """
    The confirmation loop's countdown ran out before the payment resolved.

    This is a UI-level give-up. The payment itself stays ``processing`` and
    can still be completed by a late callback.
    """

    default_error_code: str = "PAYMENT_CONFIRMATION_TIMEOUT"
    http_status: int = 408


class PaymentDeclinedError(PaymentError):
    """
    The provider reported the charge as failed (declined or cancelled).
    """

    default_error_code: str = "PAYMENT_DECLINED"
    http_status: int = 402
