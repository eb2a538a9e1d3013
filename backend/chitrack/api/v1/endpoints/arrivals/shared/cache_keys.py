"""
Cache key generation functions for the arrivals endpoints.

Keys are namespaced by query granularity so a station id and a stop id
that happen to share digits never collide.
"""

from typing import Iterable

STATION_KEY_PREFIX = "cta:arrivals:station"
STOP_KEY_PREFIX = "cta:arrivals:stop"


def station_arrivals_cache_key(station_ids: Iterable[str]) -> str:
    """Generate cache key for a station query.

    The id set is deduplicated and sorted, so ``40380,40360`` and
    ``40360,40380`` share one entry.

    Args:
        station_ids: Requested parent station ids

    Returns:
        Standardized cache key string
    """
    normalized = sorted({station_id.strip() for station_id in station_ids})
    return f"{STATION_KEY_PREFIX}:{'_'.join(normalized)}"


def stop_arrivals_cache_key(stop_id: str) -> str:
    """Generate cache key for a single platform query."""
    return f"{STOP_KEY_PREFIX}:{stop_id.strip()}"
