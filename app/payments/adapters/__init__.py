"""
Payment provider adapters.

Every call to an external payment provider goes through an adapter from
this package so that timeouts, error translation and logging stay uniform.

Usage:
    from payments.adapters import ChargeRequest, get_adapter

    adapter = get_adapter("mpesa")
    result = adapter.charge(
        ChargeRequest(contact="0712345678", amount=500,
                      reference="GEM1A2B3C4D", description="Hidden Gems - renewal")
    )
"""

from payments.adapters.base import (
    CallbackData,
    ChargeRequest,
    ChargeResult,
    PaymentProviderAdapter,
    ProviderOutcome,
    StatusQueryResult,
)
from payments.adapters.mpesa_adapter import (
    MpesaAdapter,
    MpesaConfig,
    normalize_phone_number,
)
from payments.adapters.registry import (
    get_adapter,
    register_adapter,
    registered_providers,
    reset_registry,
)
from payments.adapters.token_cache import (
    AccessToken,
    DjangoTokenCache,
    InMemoryTokenCache,
    TokenCache,
)

__all__ = [
    "AccessToken",
    "CallbackData",
    "ChargeRequest",
    "ChargeResult",
    "DjangoTokenCache",
    "InMemoryTokenCache",
    "MpesaAdapter",
    "MpesaConfig",
    "PaymentProviderAdapter",
    "ProviderOutcome",
    "StatusQueryResult",
    "TokenCache",
    "get_adapter",
    "normalize_phone_number",
    "register_adapter",
    "registered_providers",
    "reset_registry",
]
