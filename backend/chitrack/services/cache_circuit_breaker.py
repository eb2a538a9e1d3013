"""Circuit breaker helper for cache operations."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from chitrack.core.metrics import record_cache_event

logger = logging.getLogger(__name__)
T = TypeVar("T")


class CircuitBreaker:
    """Fail fast on cache operations while the backing store is unhealthy.

    Any exception raised by a protected call opens the circuit for
    ``timeout_seconds``; while open, protected calls return ``None`` without
    touching the store. A successful call closes it again.
    """

    def __init__(
        self,
        timeout_seconds: float,
        name: str = "valkey",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._name = name
        self._clock = clock
        self._open_until = 0.0

    def is_open(self) -> bool:
        """Check if the circuit breaker is currently open."""
        return self._clock() < self._open_until

    def open(self) -> None:
        """Open the circuit breaker for the configured timeout."""
        self._open_until = self._clock() + self._timeout_seconds
        record_cache_event(self._name, "circuit_open")

    def close(self) -> None:
        """Close the circuit breaker immediately."""
        self._open_until = 0.0

    def protect(
        self, func: Callable[..., Awaitable[T]]
    ) -> Callable[..., Awaitable[T | None]]:
        """Decorator turning store failures into ``None`` results."""

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T | None:
            if self.is_open():
                return None
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "Cache circuit breaker opened for %s after %s failure",
                    self._name,
                    func.__name__,
                    exc_info=exc,
                )
                self.open()
                return None
            self.close()
            return result

        return wrapper


__all__ = ["CircuitBreaker"]
