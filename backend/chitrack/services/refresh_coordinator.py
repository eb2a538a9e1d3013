"""In-process single-flight and background refresh tracking."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Awaitable, Callable, TypeVar

from chitrack.core.config import get_settings

logger = logging.getLogger(__name__)
T = TypeVar("T")

ErrorHook = Callable[[BaseException], None]


class RefreshCoordinator:
    """Collapses concurrent refreshes of one cache key into a single task.

    Synchronous callers use :meth:`run` and share whatever task is already
    in flight for their key. Background callers use :meth:`schedule`, which
    never starts a second task for a key and refuses new work once
    ``max_in_flight`` tasks are running. Tasks are not cancelled when a
    caller goes away; they finish and populate the cache.
    """

    def __init__(self, max_in_flight: int = 64) -> None:
        self._max_in_flight = max_in_flight
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    def in_flight(self, key: str) -> bool:
        task = self._in_flight.get(key)
        return task is not None and not task.done()

    def __len__(self) -> int:
        return sum(1 for task in self._in_flight.values() if not task.done())

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Await the in-flight refresh for ``key``, starting one if needed."""
        task = self._in_flight.get(key)
        if task is None or task.done():
            task = self._start(key, factory)
        # Shielded so an abandoned request does not cancel the shared fetch.
        return await asyncio.shield(task)

    def schedule(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        on_error: ErrorHook | None = None,
    ) -> bool:
        """Start a fire-and-forget refresh for ``key``.

        Returns:
            True if a new task was started.
        """
        if self.in_flight(key):
            return False
        if len(self) >= self._max_in_flight:
            logger.warning(
                "Skipping background refresh for %s: %d refreshes already in flight",
                key,
                self._max_in_flight,
            )
            return False

        task = self._start(key, factory)
        if on_error is not None:
            task.add_done_callback(lambda done: _report_failure(done, on_error))
        return True

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every in-flight refresh to settle."""
        pending = [task for task in self._in_flight.values() if not task.done()]
        if not pending:
            return
        await asyncio.wait(pending, timeout=timeout)

    async def close(self, timeout: float | None = 5.0) -> None:
        """Drain in-flight refreshes, cancelling whatever is still running."""
        await self.drain(timeout=timeout)
        pending = [task for task in self._in_flight.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._in_flight.clear()

    def _start(self, key: str, factory: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        task: asyncio.Task[T] = asyncio.ensure_future(factory())
        self._in_flight[key] = task
        task.add_done_callback(lambda done: self._finished(key, done))
        return task

    def _finished(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception as retrieved; callers of run() re-raise it.
            task.exception()


def _report_failure(task: asyncio.Task[Any], on_error: ErrorHook) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        on_error(exc)


@lru_cache
def get_refresh_coordinator() -> RefreshCoordinator:
    """Return the process-wide refresh coordinator."""
    return RefreshCoordinator(get_settings().background_refresh_max_in_flight)


async def close_refresh_coordinator() -> None:
    """Drain and drop the process-wide coordinator if it was created."""
    if get_refresh_coordinator.cache_info().currsize:
        await get_refresh_coordinator().close()
        get_refresh_coordinator.cache_clear()


__all__ = [
    "RefreshCoordinator",
    "close_refresh_coordinator",
    "get_refresh_coordinator",
]
