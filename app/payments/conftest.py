"""
Pytest fixtures shared by every payments test package.

The ``mpesa_adapter`` fixture registers a real MpesaAdapter wired to a
FakeDaraja transport, so everything from the orchestrator down to the
HTTP payloads runs for real without network access.

Usage:
    def test_charge(mpesa_adapter, daraja):
        mpesa_adapter.charge(...)
        assert daraja.push_calls
"""

import pytest

from payments.adapters import InMemoryTokenCache, MpesaAdapter, MpesaConfig, register_adapter
from payments.tests.daraja import FakeDaraja
from payments.tests.factories import ListingFactory, PaymentFactory, UserFactory


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def daraja():
    """Scriptable fake Daraja backend."""
    return FakeDaraja()


@pytest.fixture
def mpesa_config():
    return MpesaConfig(
        consumer_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
        shortcode="174379",
        passkey="test-passkey",
        callback_url="https://testserver/api/v1/payments/callbacks/mpesa/",
    )


@pytest.fixture
def token_cache():
    return InMemoryTokenCache()


@pytest.fixture
def mpesa_adapter(daraja, mpesa_config, token_cache):
    """MpesaAdapter talking to FakeDaraja, registered as "mpesa"."""
    adapter = MpesaAdapter(mpesa_config, token_cache=token_cache, http_client=daraja.client())
    register_adapter("mpesa", adapter)
    return adapter


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def owner(db):
    """Create a listing owner."""
    return UserFactory()


@pytest.fixture
def listing(db, owner):
    """Create an approved listing without a paid term."""
    return ListingFactory(owner=owner)


@pytest.fixture
def pending_payment(db, listing):
    """Create a payment not yet submitted to the provider."""
    return PaymentFactory(listing=listing)


@pytest.fixture
def processing_payment(db, listing):
    """Create a payment accepted by the provider and awaiting the payer."""
    return PaymentFactory(listing=listing, processing=True)
