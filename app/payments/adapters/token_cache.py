"""
Credential caches for provider access tokens.

Adapters receive a TokenCache at construction. Two implementations exist:

- InMemoryTokenCache: per-process dict, the default
- DjangoTokenCache: stored in a Django cache alias (Redis in deployment)
  so every worker process shares one token

Tokens are stored with an expiry that already has the safety margin
subtracted; a token is usable while ``now < expires_at``.

Concurrency:
    Neither cache serializes refreshes. When several requests observe an
    expired token at once they all fetch a new one and the last write
    wins. Every fetched token is valid, so this only costs redundant
    credential exchanges.

Usage:
    cache = InMemoryTokenCache()
    cache.set("mpesa:sandbox:174379", AccessToken("abc", expires_at))
    token = cache.get("mpesa:sandbox:174379")
    if token and token.is_valid(timezone.now()):
        ...
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from django.core.cache import caches
from django.utils import timezone


@dataclass(frozen=True)
class AccessToken:
    """
    Time-boxed provider credential.

    Attributes:
        value: Bearer token
        expires_at: Instant after which the token must not be used
            (strictly before the provider's stated expiry)
    """

    value: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class TokenCache(Protocol):
    """Storage for provider access tokens, keyed per credential set."""

    def get(self, key: str) -> AccessToken | None: ...

    def set(self, key: str, token: AccessToken) -> None: ...

    def invalidate(self, key: str) -> None: ...


class InMemoryTokenCache:
    """Process-local token cache."""

    def __init__(self) -> None:
        self._tokens: dict[str, AccessToken] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> AccessToken | None:
        with self._lock:
            return self._tokens.get(key)

    def set(self, key: str, token: AccessToken) -> None:
        with self._lock:
            self._tokens[key] = token

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._tokens.pop(key, None)


class DjangoTokenCache:
    """
    Token cache backed by a Django cache alias.

    Entries are written with a TTL equal to the token's remaining validity,
    so the backend evicts them on its own.
    """

    key_prefix = "payments:token:"

    def __init__(self, alias: str = "default") -> None:
        self.alias = alias

    @property
    def _cache(self):
        return caches[self.alias]

    def get(self, key: str) -> AccessToken | None:
        entry = self._cache.get(self.key_prefix + key)
        if not entry:
            return None
        return AccessToken(
            value=entry["value"],
            expires_at=datetime.fromisoformat(entry["expires_at"]),
        )

    def set(self, key: str, token: AccessToken) -> None:
        ttl = int((token.expires_at - timezone.now()).total_seconds())
        if ttl <= 0:
            return
        self._cache.set(
            self.key_prefix + key,
            {"value": token.value, "expires_at": token.expires_at.isoformat()},
            timeout=ttl,
        )

    def invalidate(self, key: str) -> None:
        self._cache.delete(self.key_prefix + key)


def token_cache_from_settings() -> TokenCache:
    """Build the cache selected by ``PAYMENT_TOKEN_CACHE``."""
    from django.conf import settings

    if getattr(settings, "PAYMENT_TOKEN_CACHE", "memory") == "django":
        return DjangoTokenCache()
    return InMemoryTokenCache()
