"""
Tests for the provider token caches.
"""

from datetime import timedelta

import pytest
from django.core.cache import caches
from django.test import override_settings
from django.utils import timezone

from payments.adapters import AccessToken, DjangoTokenCache, InMemoryTokenCache
from payments.adapters.token_cache import token_cache_from_settings

KEY = "mpesa:sandbox:174379"


@pytest.fixture(autouse=True)
def _clear_cache():
    caches["default"].clear()
    yield
    caches["default"].clear()


def fresh_token(value="abc", minutes=30):
    return AccessToken(value=value, expires_at=timezone.now() + timedelta(minutes=minutes))


class TestAccessToken:
    def test_valid_strictly_before_expiry(self):
        now = timezone.now()
        token = AccessToken("abc", now)

        assert token.is_valid(now - timedelta(seconds=1))
        assert not token.is_valid(now)


@pytest.mark.parametrize("cache_class", [InMemoryTokenCache, DjangoTokenCache])
class TestTokenCaches:
    """Behaviour shared by both cache implementations."""

    def test_miss_returns_none(self, cache_class):
        assert cache_class().get(KEY) is None

    def test_set_then_get(self, cache_class):
        cache = cache_class()
        token = fresh_token()

        cache.set(KEY, token)

        assert cache.get(KEY) == token

    def test_keys_are_independent(self, cache_class):
        cache = cache_class()
        cache.set(KEY, fresh_token("a"))
        cache.set("mpesa:production:600000", fresh_token("b"))

        assert cache.get(KEY).value == "a"

    def test_invalidate(self, cache_class):
        cache = cache_class()
        cache.set(KEY, fresh_token())

        cache.invalidate(KEY)

        assert cache.get(KEY) is None

    def test_invalidate_missing_key_is_noop(self, cache_class):
        cache_class().invalidate("nope")


class TestDjangoTokenCache:
    def test_shared_between_instances(self):
        """Workers using separate instances see the same token."""
        DjangoTokenCache().set(KEY, fresh_token("shared"))

        assert DjangoTokenCache().get(KEY).value == "shared"

    def test_already_expired_token_not_stored(self):
        cache = DjangoTokenCache()

        cache.set(KEY, fresh_token(minutes=-1))

        assert cache.get(KEY) is None


class TestTokenCacheFromSettings:
    @override_settings(PAYMENT_TOKEN_CACHE="django")
    def test_django(self):
        assert isinstance(token_cache_from_settings(), DjangoTokenCache)

    @override_settings(PAYMENT_TOKEN_CACHE="memory")
    def test_memory(self):
        assert isinstance(token_cache_from_settings(), InMemoryTokenCache)
