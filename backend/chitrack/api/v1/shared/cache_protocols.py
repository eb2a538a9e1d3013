"""Protocol and result primitives for shared caching flows."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")


class CacheResult(Generic[T]):
    """Container for cache lookup results with status metadata.

    ``status`` is ``"hit"`` for a fresh entry, ``"stale"`` for an entry
    served past its fresh window and ``"miss"`` when the data came
    straight from the upstream (or is absent).
    """

    def __init__(
        self,
        data: T | None = None,
        status: str = "miss",
        age_seconds: float | None = None,
        fresh: bool = False,
        headers: dict[str, str] | None = None,
    ):
        self.data = data
        self.status = status
        self.age_seconds = age_seconds
        self.fresh = fresh
        self.headers = headers or {}


class CacheRefreshProtocol(ABC, Generic[T]):
    """Base protocol for cache refresh operations."""

    @abstractmethod
    async def fetch_data(self, **kwargs: Any) -> T:
        """Fetch and shape fresh data from the upstream."""
        ...

    @abstractmethod
    def cache_name(self) -> str:
        """Return the cache name for metrics."""
        ...

    @abstractmethod
    def get_type_adapter(self) -> TypeAdapter[T]:
        """Return the adapter used to validate and dump cached payloads."""
        ...

    def serialize(self, data: T) -> Any:
        """Dump ``data`` into the JSON-compatible form kept in the cache."""
        return self.get_type_adapter().dump_python(
            data, mode="json", by_alias=True, exclude_none=True
        )

    def deserialize(self, payload: Any) -> T:
        """Validate a cached payload back into the response type."""
        return self.get_type_adapter().validate_python(payload)


__all__ = ["CacheResult", "CacheRefreshProtocol"]
