"""
Cache service with resilience patterns.

Provides distributed caching via Valkey with:
- Circuit breaker for graceful degradation when Valkey is unavailable
- In-memory fallback cache for resilience during outages
- Version-checked writes so an older value never replaces a newer one
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any

import valkey.asyncio as valkey

from chitrack.core.config import get_settings
from chitrack.core.metrics import record_cache_event
from chitrack.services.cache_circuit_breaker import CircuitBreaker
from chitrack.services.cache_fallback_store import InMemoryFallbackStore
from chitrack.services.cache_ttl_config import TTLConfig

logger = logging.getLogger(__name__)

# KEYS[1] = key; ARGV = value, version field, version, ttl seconds (0 = none).
# Returns 1 when written, 0 when the stored document carries a newer version.
SET_IF_NEWER_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current then
  local ok, decoded = pcall(cjson.decode, current)
  if ok and type(decoded) == 'table' then
    local existing = tonumber(decoded[ARGV[2]])
    if existing and existing > tonumber(ARGV[3]) then
      return 0
    end
  end
end
if tonumber(ARGV[4]) > 0 then
  redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[4])
else
  redis.call('SET', KEYS[1], ARGV[1])
end
return 1
"""


class CacheService:
    """
    Cache service with resilience patterns.

    Provides JSON caching with:
    - Primary storage in Valkey
    - Circuit breaker for graceful degradation
    - In-memory fallback during outages
    - Compare-and-set writes keyed on a version field
    """

    def __init__(self, client: valkey.Valkey, config: TTLConfig | None = None) -> None:
        self._client = client
        self._config = config or TTLConfig()
        self._circuit_breaker = CircuitBreaker(self._config.circuit_breaker_timeout)
        self._fallback = InMemoryFallbackStore()

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def get_json(self, key: str) -> dict[str, Any] | None:
        """Retrieve a JSON document and decode it.

        Undecodable documents are logged and reported as absent.
        """
        payload = await self._get_from_valkey(key)
        if payload is None:
            payload = await self._fallback.get(key)
        if payload is None:
            record_cache_event("json", "miss")
            return None

        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Failed to decode cached JSON for key %s", key)
            record_cache_event("json", "decode_error")
            return None
        if not isinstance(decoded, dict):
            logger.warning("Ignoring non-object cached JSON for key %s", key)
            record_cache_event("json", "decode_error")
            return None
        record_cache_event("json", "hit")
        return decoded

    async def set_json_if_newer(
        self,
        key: str,
        value: dict[str, Any],
        *,
        version_field: str,
        ttl_seconds: int | None = None,
    ) -> bool:
        """Store ``value`` unless the stored document has a newer version.

        The comparison and the write happen atomically inside Valkey. The
        version is read from ``value[version_field]``.

        Returns:
            False when the write was refused because a newer document exists.
        """
        version = float(value[version_field])
        encoded = json.dumps(value)
        effective_ttl = self._config.get_effective_ttl(ttl_seconds)

        stored = await self._compare_and_set_valkey(
            key, encoded, version_field, version, effective_ttl
        )
        fallback_stored = await self._fallback.set_if_newer(
            key, encoded, version, effective_ttl
        )
        await self._fallback.cleanup_expired()

        if stored is None:
            return fallback_stored
        return stored

    async def _get_from_valkey(self, key: str) -> str | None:
        """Get value from Valkey with circuit breaker protection."""

        @self._circuit_breaker.protect
        async def _get() -> str | None:
            return await self._client.get(key)

        return await _get()

    async def _compare_and_set_valkey(
        self,
        key: str,
        value: str,
        version_field: str,
        version: float,
        ttl_seconds: int | None,
    ) -> bool | None:
        """Run the version-checked write. ``None`` means Valkey was unavailable."""

        @self._circuit_breaker.protect
        async def _cas() -> bool:
            written = await self._client.eval(
                SET_IF_NEWER_SCRIPT,
                1,
                key,
                value,
                version_field,
                repr(version),
                ttl_seconds or 0,
            )
            return bool(int(written))

        return await _cas()


# =============================================================================
# Factory Functions
# =============================================================================


@lru_cache
def get_valkey_client() -> valkey.Valkey:
    """Return a shared Valkey client instance."""
    settings = get_settings()
    return valkey.from_url(
        settings.valkey_url,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_valkey_client() -> None:
    """Close the shared Valkey client if one was created."""
    get_cache_service.cache_clear()
    if get_valkey_client.cache_info().currsize:
        await get_valkey_client().aclose()
        get_valkey_client.cache_clear()


@lru_cache
def get_cache_service() -> CacheService:
    """FastAPI dependency hook for cache usage.

    Shared per process so the circuit breaker state and the in-memory
    fallback survive across requests.
    """
    return CacheService(get_valkey_client())


__all__ = [
    "CacheService",
    "close_valkey_client",
    "get_cache_service",
    "get_valkey_client",
    "SET_IF_NEWER_SCRIPT",
]
