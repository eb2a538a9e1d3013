"""In-memory fallback store used by the cache service when Valkey is unavailable."""

from __future__ import annotations

import asyncio
import time
from typing import Callable


class InMemoryFallbackStore:
    """
    Async-safe in-memory fallback cache with TTL expiry.

    Entries carry an optional version so writers can refuse to replace a
    newer value with an older one. Expired entries are pruned on access and
    by ``cleanup_expired``; there is no size bound beyond TTL expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[str, float | None, float | None]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _expires_at(self, ttl_seconds: int | None) -> float | None:
        if ttl_seconds and ttl_seconds > 0:
            return self._clock() + ttl_seconds
        return None

    def _is_expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and expires_at <= self._clock()

    async def set_if_newer(
        self, key: str, value: str, version: float, ttl_seconds: int | None
    ) -> bool:
        """Store ``value`` unless a live entry carries a higher version."""
        expires_at = self._expires_at(ttl_seconds)
        async with self._lock:
            current = self._store.get(key)
            if current is not None and not self._is_expired(current[1]):
                current_version = current[2]
                if current_version is not None and current_version > version:
                    return False
            self._store[key] = (value, expires_at, version)
            return True

    async def get(self, key: str) -> str | None:
        """Retrieve a value, returning None if expired or not found."""
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            value, expires_at, _ = entry
            if self._is_expired(expires_at):
                del self._store[key]
                return None

            return value

    async def cleanup_expired(self) -> None:
        """Remove all expired entries from the store."""
        async with self._lock:
            expired_keys = [
                key
                for key, (_, expires_at, _) in self._store.items()
                if self._is_expired(expires_at)
            ]
            for key in expired_keys:
                del self._store[key]


__all__ = ["InMemoryFallbackStore"]
