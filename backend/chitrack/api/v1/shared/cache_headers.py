"""Shared cache header utilities for API endpoints.

Arrivals responses describe where their data came from instead of
advertising a client-side cache lifetime: predictions go stale within
seconds, so browsers and proxies are told not to store them.
"""

from fastapi import Response

CACHE_HIT_VALUES = {"hit": "true", "stale": "stale", "miss": "false"}


def cache_status_headers(
    status: str, age_seconds: float | None, fresh: bool
) -> dict[str, str]:
    """Build the observability headers for a cache outcome.

    Args:
        status: ``"hit"``, ``"stale"`` or ``"miss"``.
        age_seconds: Age of the served entry; ``None`` is reported as 0.
        fresh: Whether the served entry is inside its fresh window.

    Returns:
        Header names mapped to values.
    """
    hit = CACHE_HIT_VALUES.get(status, "false")
    return {
        "X-Cache": hit,
        "X-Cache-Hit": hit,
        "X-Cache-Age": str(int(age_seconds or 0)),
        "X-Cache-Fresh": "true" if fresh else "false",
    }


def set_no_store(response: Response) -> None:
    """Forbid intermediaries from caching real-time payloads."""
    response.headers["Cache-Control"] = "no-store"


def apply_cache_headers(response: Response, headers: dict[str, str]) -> None:
    """Copy cache outcome headers onto ``response``."""
    for header, value in headers.items():
        response.headers[header] = value
    set_no_store(response)


__all__ = ["apply_cache_headers", "cache_status_headers", "set_no_store"]
