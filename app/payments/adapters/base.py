"""
Provider-agnostic adapter interface and its data types.

Each payment provider is wrapped by one PaymentProviderAdapter subclass
that owns the provider's wire protocol: credential exchange, charge
initiation, status query, callback decoding and payer-contact
normalization. The orchestrator only talks to this interface and picks
the concrete adapter from payments.adapters.registry by provider name.

Adding a provider:
    class AirtelMoneyAdapter(PaymentProviderAdapter):
        name = "airtel"
        requires_contact = True
        ...

    register_adapter("airtel", AirtelMoneyAdapter.from_settings)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from payments.exceptions import PaymentValidationError

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal


# =============================================================================
# Data Types
# =============================================================================


class ProviderOutcome(str, Enum):
    """Provider's view of a charge, as reported by a query or callback."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ChargeRequest:
    """
    Parameters for initiating a charge.

    Attributes:
        contact: Payer contact as entered (normalized by the adapter)
        amount: Amount in major currency units; adapters that need whole
            units round it before transmission
        reference: Account reference shown to the payer
        description: Short transaction description
    """

    contact: str | None
    amount: Decimal | int
    reference: str
    description: str

    def __post_init__(self) -> None:
        if self.amount is None or self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.reference:
            raise ValueError("reference is required")


@dataclass
class ChargeResult:
    """
    Provider acceptance of a charge.

    Attributes:
        merchant_request_id: Provider id assigned at initiation
        checkout_request_id: Provider id used for queries and callbacks
        confirmation_message: Message to show the payer
        raw_response: Full provider response (for debugging)
    """

    merchant_request_id: str
    checkout_request_id: str
    confirmation_message: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class StatusQueryResult:
    """
    Answer to a status query.

    Attributes:
        result_code: Provider result code (None while the provider has no
            result yet)
        result_description: Provider description, verbatim
        outcome: Interpretation of the result code
        message: Description suitable for persisting on a failed payment
    """

    result_code: int | None
    result_description: str
    outcome: ProviderOutcome
    message: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.outcome != ProviderOutcome.PENDING


@dataclass
class CallbackData:
    """
    Decoded provider callback.

    Optional fields are only populated on success callbacks.
    """

    merchant_request_id: str
    checkout_request_id: str
    result_code: int
    result_description: str
    amount: Decimal | None = None
    provider_receipt: str | None = None
    transaction_timestamp: datetime | None = None
    contact: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def outcome(self) -> ProviderOutcome:
        return ProviderOutcome.COMPLETED if self.result_code == 0 else ProviderOutcome.FAILED


# =============================================================================
# Adapter Interface
# =============================================================================


class PaymentProviderAdapter(ABC):
    """
    Interface every payment provider adapter implements.

    Attributes:
        name: Registry key, persisted on Payment.provider
        requires_contact: Whether a payer contact is mandatory (mobile money
            needs a phone to push the confirmation prompt to)

    Note:
        Instances are shared per process by the registry, so
        implementations must keep request state out of ``self``. Only
        the credential cache is shared.
    """

    name: str = ""
    requires_contact: bool = False

    def normalize_contact(self, contact: str) -> str:
        """Return the canonical form of a payer contact."""
        return contact.strip()

    def is_valid_contact(self, normalized: str) -> bool:
        return bool(normalized)

    def validate_contact(self, contact: str | None) -> str | None:
        """
        Normalize and validate a payer contact.

        Args:
            contact: Contact as entered by the payer

        Returns:
            Normalized contact, or None when the provider does not need one
            and none was given

        Raises:
            PaymentValidationError: Contact missing or invalid
        """
        if not contact or not contact.strip():
            if self.requires_contact:
                raise PaymentValidationError(
                    f"A payer contact is required for {self.name} payments",
                    error_code="CONTACT_REQUIRED",
                    details={"provider": self.name},
                )
            return None

        normalized = self.normalize_contact(contact)
        if not self.is_valid_contact(normalized):
            raise PaymentValidationError(
                "Invalid payer contact",
                error_code="INVALID_CONTACT",
                details={"provider": self.name},
            )
        return normalized

    def describe_failure(self, result_code: int | None, description: str) -> str:
        """Failure message shown to the payer for a provider result code."""
        return description

    @abstractmethod
    def get_access_token(self) -> str:
        """Return a valid provider credential, fetching one if needed."""

    @abstractmethod
    def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Initiate a charge.

        Raises:
            PaymentValidationError: Invalid contact or amount
            ProviderError: Provider unreachable or rejected the charge
        """

    @abstractmethod
    def query_status(self, checkout_request_id: str) -> StatusQueryResult:
        """Ask the provider for the current state of a charge."""

    @abstractmethod
    def parse_callback(self, body: bytes | str | dict[str, Any]) -> CallbackData:
        """
        Decode an inbound callback body.

        Raises:
            CallbackValidationError: Body does not match the provider schema
        """
