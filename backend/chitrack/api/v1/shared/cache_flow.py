"""Cache lookup and refresh flows shared across the arrivals endpoints."""

from __future__ import annotations

import logging
import time
from typing import Any, TypeVar

from pydantic import ValidationError

from chitrack.core.metrics import observe_cache_refresh, record_cache_event
from chitrack.services.arrivals_cache import ArrivalsCacheStore, CacheEntry, Freshness
from chitrack.services.cta_errors import (
    CTALogicalError,
    CTAServiceError,
    CTAUpstreamError,
)
from chitrack.services.refresh_coordinator import RefreshCoordinator

from .cache_headers import cache_status_headers
from .cache_protocols import CacheRefreshProtocol, CacheResult
from .errors import upstream_failure

logger = logging.getLogger(__name__)
T = TypeVar("T")

SERVE_EXPIRED_POLICY = "serve_expired"


def _decode(
    protocol: CacheRefreshProtocol[T], entry: CacheEntry, cache_name: str
) -> T | None:
    try:
        return protocol.deserialize(entry.payload)
    except ValidationError:
        logger.warning("Cached payload for %s no longer validates", entry.key)
        record_cache_event(cache_name, "invalid_payload")
        return None


def _result(
    data: T, status: str, age_seconds: float, fresh: bool
) -> CacheResult[T]:
    return CacheResult(
        data=data,
        status=status,
        age_seconds=age_seconds,
        fresh=fresh,
        headers=cache_status_headers(status, age_seconds, fresh),
    )


async def handle_cache_lookup(
    store: ArrivalsCacheStore,
    coordinator: RefreshCoordinator,
    protocol: CacheRefreshProtocol[T],
    cache_key: str,
    allow_background: bool = True,
    **fetch_kwargs: Any,
) -> CacheResult[T]:
    """Classify the cached entry and decide whether it can be served.

    Fresh entries are served as they are. Stale entries are served while a
    background refresh is scheduled, unless the caller disallowed background
    work, in which case they are treated like a miss. Expired entries are
    always a miss.
    """
    cache_name = protocol.cache_name()
    entry = await store.get(cache_key)
    if entry is None:
        record_cache_event(cache_name, "miss")
        return CacheResult(status="miss")

    freshness = store.classify(entry)
    if freshness is Freshness.EXPIRED:
        record_cache_event(cache_name, "expired")
        return CacheResult(status="miss")
    if freshness is Freshness.STALE and not allow_background:
        record_cache_event(cache_name, "stale_blocking_refresh")
        return CacheResult(status="miss")

    data = _decode(protocol, entry, cache_name)
    if data is None:
        return CacheResult(status="miss")

    age = entry.age(store.now())
    if freshness is Freshness.FRESH:
        record_cache_event(cache_name, "hit")
        return _result(data, "hit", age, fresh=True)

    record_cache_event(cache_name, "stale_return")
    execute_background_refresh(
        protocol, store, coordinator, cache_key, **fetch_kwargs
    )
    return _result(data, "stale", age, fresh=False)


async def handle_cache_errors(
    store: ArrivalsCacheStore,
    protocol: CacheRefreshProtocol[T],
    cache_key: str,
    exc: Exception,
    failure_policy: str,
    requested: str = "",
) -> CacheResult[T]:
    """Turn a failed synchronous refresh into a response or an API error.

    With the ``serve_expired`` policy a retained entry of any age is served
    in place of the error. Non-CTA exceptions propagate unchanged.
    """
    if not isinstance(exc, CTAServiceError):
        raise exc

    cache_name = protocol.cache_name()
    if failure_policy == SERVE_EXPIRED_POLICY:
        entry = await store.get(cache_key)
        if entry is not None:
            data = _decode(protocol, entry, cache_name)
            if data is not None:
                record_cache_event(cache_name, "expired_return")
                logger.warning(
                    "Serving retained %s entry after upstream failure: %s",
                    cache_key,
                    exc,
                )
                return _result(data, "stale", entry.age(store.now()), fresh=False)

    raise upstream_failure(exc, requested) from exc


async def refresh_entry(
    protocol: CacheRefreshProtocol[T],
    store: ArrivalsCacheStore,
    cache_key: str,
    **fetch_kwargs: Any,
) -> T:
    """Run one fetch, shape and store pass for ``cache_key``.

    The entry is stamped with the time the fetch started, so a fetch that
    started earlier but finished later cannot replace a newer entry.
    """
    cache_name = protocol.cache_name()
    started_at = store.now()
    start = time.perf_counter()
    try:
        fresh_data = await protocol.fetch_data(**fetch_kwargs)
    except CTAServiceError:
        record_cache_event(cache_name, "refresh_error")
        raise

    observe_cache_refresh(cache_name, time.perf_counter() - start)
    await store.put(cache_key, protocol.serialize(fresh_data), created_at=started_at)
    record_cache_event(cache_name, "refresh_success")
    return fresh_data


async def execute_cache_refresh(
    protocol: CacheRefreshProtocol[T],
    store: ArrivalsCacheStore,
    coordinator: RefreshCoordinator,
    cache_key: str,
    **fetch_kwargs: Any,
) -> T:
    """Refresh ``cache_key``, joining a refresh already in flight for it."""
    return await coordinator.run(
        cache_key, lambda: refresh_entry(protocol, store, cache_key, **fetch_kwargs)
    )


def execute_background_refresh(
    protocol: CacheRefreshProtocol[T],
    store: ArrivalsCacheStore,
    coordinator: RefreshCoordinator,
    cache_key: str,
    **fetch_kwargs: Any,
) -> bool:
    """Schedule a refresh that never blocks or fails the current request.

    Returns:
        True if a new background task was started.
    """
    cache_name = protocol.cache_name()

    def _on_error(exc: BaseException) -> None:
        if isinstance(exc, CTAUpstreamError):
            record_cache_event(cache_name, "background_upstream_error")
            logger.warning(
                "CTA upstream unavailable while refreshing %s.", cache_key, exc_info=exc
            )
        elif isinstance(exc, CTALogicalError):
            record_cache_event(cache_name, "background_logical_error")
            logger.warning(
                "CTA reported an error while refreshing %s: %s", cache_key, exc
            )
        elif isinstance(exc, CTAServiceError):
            record_cache_event(cache_name, "background_error")
            logger.warning(
                "CTA service error while refreshing %s.", cache_key, exc_info=exc
            )
        else:
            record_cache_event(cache_name, "background_unexpected_error")
            logger.error(
                "Unexpected error while refreshing %s.", cache_key, exc_info=exc
            )

    started = coordinator.schedule(
        cache_key,
        lambda: refresh_entry(protocol, store, cache_key, **fetch_kwargs),
        on_error=_on_error,
    )
    record_cache_event(
        cache_name, "background_scheduled" if started else "background_skipped"
    )
    return started


__all__ = [
    "SERVE_EXPIRED_POLICY",
    "execute_background_refresh",
    "execute_cache_refresh",
    "handle_cache_errors",
    "handle_cache_lookup",
    "refresh_entry",
]
