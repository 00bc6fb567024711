"""
Registry of payment provider adapters, keyed by provider name.

Adapters are built lazily from a factory on first use and then shared for
the life of the process, which is what lets the M-Pesa token cache be
reused across requests.

Usage:
    from payments.adapters.registry import get_adapter, register_adapter

    adapter = get_adapter("mpesa")

    # Tests swap in a fake or a pre-configured instance
    register_adapter("mpesa", fake_adapter)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from payments.adapters.base import PaymentProviderAdapter
from payments.adapters.mpesa_adapter import MpesaAdapter
from payments.exceptions import PaymentValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    AdapterFactory = Callable[[], PaymentProviderAdapter]

logger = logging.getLogger(__name__)

_DEFAULT_FACTORIES: dict[str, AdapterFactory] = {
    MpesaAdapter.name: MpesaAdapter.from_settings,
}

_factories: dict[str, AdapterFactory] = dict(_DEFAULT_FACTORIES)
_instances: dict[str, PaymentProviderAdapter] = {}
_lock = threading.Lock()


def register_adapter(
    name: str,
    adapter: PaymentProviderAdapter | AdapterFactory,
) -> None:
    """
    Register an adapter instance or a zero-argument factory under ``name``.

    Replaces any previous registration and drops its cached instance.
    """
    with _lock:
        _instances.pop(name, None)
        if isinstance(adapter, PaymentProviderAdapter):
            _instances[name] = adapter
            _factories[name] = lambda: adapter
        else:
            _factories[name] = adapter
    logger.debug("Registered payment adapter", extra={"provider": name})


def get_adapter(name: str) -> PaymentProviderAdapter:
    """
    Return the shared adapter for ``name``.

    Raises:
        PaymentValidationError: No provider registered under that name
    """
    with _lock:
        adapter = _instances.get(name)
        if adapter is not None:
            return adapter
        factory = _factories.get(name)
        if factory is None:
            raise PaymentValidationError(
                f"Unknown payment provider: {name}",
                error_code="UNKNOWN_PROVIDER",
                details={"provider": name, "available": sorted(_factories)},
            )
        adapter = factory()
        _instances[name] = adapter
        return adapter


def registered_providers() -> list[str]:
    with _lock:
        return sorted(_factories)


def reset_registry() -> None:
    """Restore the built-in providers and drop all cached instances."""
    with _lock:
        _instances.clear()
        _factories.clear()
        _factories.update(_DEFAULT_FACTORIES)
