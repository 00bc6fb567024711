"""
Application-wide exception hierarchy.

Domain code raises these instead of returning error tuples; the API layer
turns them into JSON bodies through ``to_dict()`` and picks the HTTP status
from ``http_status``.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Bad input, rejected before any side effect
    ├── NotFoundError - Unknown record or correlation id
    ├── PermissionDeniedError - Caller may not act on the resource
    ├── ConflictError - Resource state does not allow the operation
    └── ExternalServiceError - A third-party call failed or was rejected

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Listing not found",
        error_code="LISTING_NOT_FOUND",
        details={"listing_id": str(listing_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional context (ids, provider codes, field errors)
        http_status: Status code the API layer responds with
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to a dictionary for an API response.

        Returns:
            Dict with ``error`` and ``error_code`` keys, plus ``details``
            when context was attached.

        Example:
            {
                "error": "Payment not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"payment_id": "5f0c..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input fails validation before any external call is made.

    Example:
        raise ValidationError(
            "Phone number is required for M-Pesa payments",
            error_code="CONTACT_REQUIRED",
        )

    Note:
        DRF serializers still validate request shape; this is for
        service-layer rules.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a single-record lookup finds nothing."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the authenticated user may not act on a resource.

    Example:
        if listing.owner_id != user.id:
            raise PermissionDeniedError(
                "You do not own this listing", error_code="NOT_LISTING_OWNER"
            )
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current resource state.

    Use for:
    - Invalid state transitions
    - Paying for a listing that already has an active term
    - Reassigning identifiers that may only be set once
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a third-party service call fails.

    Example:
        except httpx.TimeoutException as e:
            raise ExternalServiceError(
                "M-Pesa did not respond in time",
                error_code="PROVIDER_TIMEOUT",
                details={"service": "mpesa", "original_error": str(e)},
            ) from e

    Note:
        Log the original error but keep internal details out of client
        responses in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
