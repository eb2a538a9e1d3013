"""
Shared utilities for the arrivals endpoints.
"""

from .cache_keys import station_arrivals_cache_key, stop_arrivals_cache_key

__all__ = [
    "station_arrivals_cache_key",
    "stop_arrivals_cache_key",
]
