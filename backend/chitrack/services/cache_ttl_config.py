"""TTL configuration wrapper for cache components."""

from __future__ import annotations

from chitrack.core.config import Settings, get_settings


class TTLConfig:
    """Centralized TTL configuration with validation."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        self.arrivals_fresh_ttl = settings.arrivals_fresh_ttl_seconds
        self.arrivals_stale_ttl = settings.arrivals_stale_ttl_seconds
        self.arrivals_retention_ttl = settings.arrivals_cache_retention_seconds

        self.circuit_breaker_timeout = settings.cache_circuit_breaker_timeout_seconds

        self._validate_ttls()

    def _validate_ttls(self) -> None:
        """Validate that all TTL values are non-negative."""
        for attr_name, value in self.__dict__.items():
            if "ttl" in attr_name and isinstance(value, (int, float)) and value < 0:
                raise ValueError(f"TTL value for {attr_name} cannot be negative: {value}")

    def get_effective_ttl(self, ttl_seconds: int | None) -> int | None:
        """Get the backing-store TTL, using the arrivals storage TTL if none provided."""
        if ttl_seconds is not None:
            return ttl_seconds if ttl_seconds > 0 else None
        storage_ttl = self.arrivals_storage_ttl
        return storage_ttl if storage_ttl > 0 else None

    @property
    def arrivals_storage_ttl(self) -> int:
        """How long an arrivals entry physically stays in the store.

        Never shorter than the stale window, so a stale entry is always
        still readable.
        """
        return max(self.arrivals_stale_ttl, self.arrivals_retention_ttl)


__all__ = ["TTLConfig"]
