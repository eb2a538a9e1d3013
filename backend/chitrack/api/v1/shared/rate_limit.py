"""Shared rate limiter for API endpoints.

This module provides a centralized rate limiter that can be imported by
endpoint routers to apply consistent rate limiting across the API.
"""

import logging
from typing import Callable

from slowapi import Limiter
from slowapi.util import get_remote_address

from chitrack.core.config import get_settings

logger = logging.getLogger(__name__)

# slowapi expects list[str | Callable[..., str]]
LimitsType = list[str | Callable[..., str]]

# Arrivals requests can each reach the CTA, so they share one budget per client.
RATE_LIMIT_ARRIVALS = "60/minute"

_limiter: Limiter | None = None


def get_limiter() -> Limiter:
    """Get or create the shared rate limiter instance.

    Counters live in Valkey so that every worker shares them; slowapi falls
    back to in-memory counters while Valkey is unreachable.
    """
    global _limiter
    if _limiter is None:
        settings = get_settings()

        default_limits: LimitsType = [
            f"{settings.rate_limit_requests_per_minute}/minute",
            f"{settings.rate_limit_requests_per_hour}/hour",
            f"{settings.rate_limit_requests_per_day}/day",
        ]

        if settings.rate_limit_enabled:
            try:
                _limiter = Limiter(
                    key_func=get_remote_address,
                    storage_uri=settings.valkey_url,
                    default_limits=default_limits,
                    in_memory_fallback_enabled=True,
                )
            except Exception as exc:
                logger.warning(
                    "Rate limiter storage unavailable (%s); using in-memory counters.",
                    exc,
                )
                _limiter = Limiter(
                    key_func=get_remote_address,
                    default_limits=default_limits,
                )
        else:
            _limiter = Limiter(
                key_func=get_remote_address,
                default_limits=default_limits,
                enabled=False,
            )

    return _limiter


limiter = get_limiter()
