"""
Shared dependency injection functions for API endpoints.
"""

from fastapi import Depends

from chitrack.core.config import Settings, get_settings
from chitrack.services.arrivals_cache import ArrivalsCacheStore
from chitrack.services.arrivals_shaper import ArrivalsShaper
from chitrack.services.cache import CacheService, get_cache_service
from chitrack.services.cache_ttl_config import TTLConfig


def get_arrivals_store(
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> ArrivalsCacheStore:
    """Create the arrivals cache store on top of the shared cache service."""
    return ArrivalsCacheStore(cache, TTLConfig(settings))


def get_arrivals_shaper(settings: Settings = Depends(get_settings)) -> ArrivalsShaper:
    return ArrivalsShaper(
        per_stop=settings.arrivals_per_stop,
        skew_ms=settings.arrivals_clock_skew_ms,
        lookback_minutes=settings.arrivals_lookback_minutes,
    )
