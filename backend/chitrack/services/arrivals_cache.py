"""Arrivals cache entries with explicit fresh / stale / expired bands."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from chitrack.core.metrics import record_cache_event
from chitrack.services.cache import CacheService
from chitrack.services.cache_ttl_config import TTLConfig

logger = logging.getLogger(__name__)

CREATED_AT_FIELD = "created_at"
PAYLOAD_FIELD = "payload"


class Freshness(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CacheEntry:
    """A shaped payload and the wall-clock instant it was produced."""

    key: str
    payload: Any
    created_at: float

    def age(self, now: float) -> float:
        """Seconds since the entry was produced, never negative."""
        return max(0.0, now - self.created_at)


class ArrivalsCacheStore:
    """Key/value store for shaped arrivals.

    Creation instants are wall-clock epoch seconds so entries written by
    one worker can be classified by another. Storage failures never reach
    the caller: reads degrade to a miss and writes are dropped.
    """

    def __init__(
        self,
        cache: CacheService,
        config: TTLConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._config = config or TTLConfig()
        self._clock = clock

    @property
    def fresh_ttl(self) -> int:
        return self._config.arrivals_fresh_ttl

    @property
    def stale_ttl(self) -> int:
        return self._config.arrivals_stale_ttl

    def now(self) -> float:
        return self._clock()

    async def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry for ``key`` regardless of its age."""
        try:
            document = await self._cache.get_json(key)
        except Exception:
            logger.warning("Arrivals cache read failed for %s", key, exc_info=True)
            record_cache_event("arrivals_store", "read_error")
            return None
        if document is None:
            return None

        try:
            return CacheEntry(
                key=key,
                payload=document[PAYLOAD_FIELD],
                created_at=float(document[CREATED_AT_FIELD]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed arrivals cache entry for %s", key)
            record_cache_event("arrivals_store", "malformed_entry")
            return None

    async def put(
        self, key: str, payload: Any, created_at: float | None = None
    ) -> bool:
        """Store ``payload`` stamped with ``created_at`` (default: now).

        Returns:
            False when the write was refused because the stored entry is
            newer, or when the write could not be performed.
        """
        stamp = self.now() if created_at is None else created_at
        document = {CREATED_AT_FIELD: stamp, PAYLOAD_FIELD: payload}
        try:
            stored = await self._cache.set_json_if_newer(
                key,
                document,
                version_field=CREATED_AT_FIELD,
                ttl_seconds=self._config.arrivals_storage_ttl,
            )
        except Exception:
            logger.warning("Arrivals cache write failed for %s", key, exc_info=True)
            record_cache_event("arrivals_store", "write_error")
            return False

        if not stored:
            logger.info("Skipped overwriting %s with an older arrivals entry", key)
            record_cache_event("arrivals_store", "write_rejected_older")
        return stored

    def is_fresh(self, entry: CacheEntry, fresh_ttl: float | None = None) -> bool:
        """True strictly before ``created_at + fresh_ttl``."""
        ttl = self.fresh_ttl if fresh_ttl is None else fresh_ttl
        return entry.age(self.now()) < ttl

    def is_expired(self, entry: CacheEntry, stale_ttl: float | None = None) -> bool:
        """True at or after ``created_at + stale_ttl``."""
        ttl = self.stale_ttl if stale_ttl is None else stale_ttl
        return entry.age(self.now()) >= ttl

    def classify(self, entry: CacheEntry) -> Freshness:
        if self.is_fresh(entry):
            return Freshness.FRESH
        if self.is_expired(entry):
            return Freshness.EXPIRED
        return Freshness.STALE


__all__ = ["ArrivalsCacheStore", "CacheEntry", "Freshness"]
