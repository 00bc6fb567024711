"""
Base service layer patterns.

Services hold business logic; views deal with HTTP and models with
storage. Expected failures come back as a ServiceResult, unexpected ones
are raised as core.exceptions errors.

Usage:
    from core.services import BaseService, ServiceResult

    class ListingService(BaseService):
        @classmethod
        def rename(cls, listing_id, name) -> ServiceResult[Listing]:
            with cls.atomic():
                listing = Listing.objects.select_for_update().get(id=listing_id)
                listing.name = name
                listing.save(update_fields=["name", "updated_at"])

            cls.get_logger().info("Renamed listing", extra={"listing_id": str(listing.id)})
            return ServiceResult.success(listing)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data (may also be set on failure when the caller still
            needs a handle, e.g. the id of a payment that failed to submit)
        error: Error message if failed
        error_code: Machine-readable error code
        errors: Field-level errors for validation failures

    Usage:
        result = PaymentOrchestrator.initiate_payment(params)
        if result.success:
            payment_id = result.data.payment_id
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        data: T | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
            errors: Field-level errors
            data: Optional partial data the caller still needs

        Returns:
            ServiceResult with success=False
        """
        return cls(
            success=False,
            data=data,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from a caught exception.

        Application errors keep their own ``error_code``; anything else falls
        back to the upper-cased class name.
        """
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        message = getattr(exc, "message", None) or str(exc)
        return cls(success=False, error=message, error_code=code)

    def to_response(self) -> dict[str, Any]:
        """Convert a failed result to an API error body."""
        response: dict[str, Any] = {"success": self.success, "error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only and share two helpers: a logger named
    after the concrete class, and an explicit transaction boundary.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get a logger named ``<module>.<ClassName>`` for easy filtering.

        Example:
            cls.get_logger().info("Payment resolved", extra={"payment_id": pid})
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the enclosed block in a database transaction.

        Thin wrapper around ``django.db.transaction.atomic`` that keeps
        transaction boundaries visible in service code.
        """
        with transaction.atomic():
            yield
