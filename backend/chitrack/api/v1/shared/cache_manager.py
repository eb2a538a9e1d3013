"""Thin orchestrator that wires cache protocols to shared flows."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from fastapi import Response

from chitrack.core.metrics import record_cache_event
from chitrack.services.arrivals_cache import ArrivalsCacheStore
from chitrack.services.refresh_coordinator import RefreshCoordinator

from .cache_flow import (
    execute_cache_refresh,
    handle_cache_errors,
    handle_cache_lookup,
    refresh_entry,
)
from .cache_headers import apply_cache_headers, cache_status_headers
from .cache_protocols import CacheRefreshProtocol

T = TypeVar("T")


class CacheManager(Generic[T]):
    """High-level cache manager that orchestrates lookup, refresh, and error handling."""

    def __init__(
        self,
        protocol: CacheRefreshProtocol[T],
        store: ArrivalsCacheStore,
        coordinator: RefreshCoordinator,
        failure_policy: str = "error",
    ):
        self.protocol = protocol
        self.store = store
        self.coordinator = coordinator
        self.failure_policy = failure_policy

    async def get_cached_data(
        self,
        cache_key: str,
        response: Response,
        *,
        force_refresh: bool = False,
        allow_background: bool = True,
        requested: str = "",
        **fetch_kwargs: Any,
    ) -> T:
        """Serve ``cache_key`` from cache or the upstream, setting cache headers."""
        if force_refresh:
            record_cache_event(self.protocol.cache_name(), "force_refresh")
        else:
            cache_result = await handle_cache_lookup(
                self.store,
                self.coordinator,
                self.protocol,
                cache_key,
                allow_background=allow_background,
                **fetch_kwargs,
            )
            if cache_result.data is not None:
                apply_cache_headers(response, cache_result.headers)
                return cache_result.data

        try:
            if force_refresh:
                # Forced requests always reach the upstream, even while a
                # refresh for the same key is already running.
                fresh_data = await refresh_entry(
                    self.protocol, self.store, cache_key, **fetch_kwargs
                )
            else:
                fresh_data = await execute_cache_refresh(
                    self.protocol,
                    self.store,
                    self.coordinator,
                    cache_key,
                    **fetch_kwargs,
                )
        except Exception as exc:
            fallback = await handle_cache_errors(
                self.store,
                self.protocol,
                cache_key,
                exc,
                self.failure_policy,
                requested=requested,
            )
            apply_cache_headers(response, fallback.headers)
            return fallback.data  # type: ignore[return-value]

        apply_cache_headers(response, cache_status_headers("miss", 0, fresh=True))
        return fresh_data


__all__ = ["CacheManager"]
