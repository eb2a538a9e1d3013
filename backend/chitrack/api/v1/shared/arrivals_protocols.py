"""Cache refresh protocol implementations for the arrivals endpoints.

Both protocols run the same fetch and shape pipeline and differ only in
which CTA query they issue and which shape they produce.
"""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter

from chitrack.api.v1.shared.cache_protocols import CacheRefreshProtocol
from chitrack.models.arrivals import StationArrivals, StopArrivals
from chitrack.services.arrivals_shaper import ArrivalsShaper
from chitrack.services.cta_client import CTAClient

_STATION_ADAPTER: TypeAdapter[list[StationArrivals]] = TypeAdapter(
    list[StationArrivals]
)
_STOP_ADAPTER: TypeAdapter[StopArrivals] = TypeAdapter(StopArrivals)


class StationArrivalsRefreshProtocol(CacheRefreshProtocol[list[StationArrivals]]):
    """Cache refresh protocol for station (``mapid``) queries."""

    def __init__(self, client: CTAClient, shaper: ArrivalsShaper):
        self.client = client
        self.shaper = shaper

    def cache_name(self) -> str:
        return "cta_station_arrivals"

    def get_type_adapter(self) -> TypeAdapter[list[StationArrivals]]:
        return _STATION_ADAPTER

    async def fetch_data(self, **kwargs: Any) -> list[StationArrivals]:
        station_ids: list[str] = kwargs["station_ids"]
        records = await self.client.get_station_arrivals(station_ids)
        return StationArrivals.from_dtos(self.shaper.shape_stations(records))


class StopArrivalsRefreshProtocol(CacheRefreshProtocol[StopArrivals]):
    """Cache refresh protocol for single platform (``stpid``) queries."""

    def __init__(self, client: CTAClient, shaper: ArrivalsShaper):
        self.client = client
        self.shaper = shaper

    def cache_name(self) -> str:
        return "cta_stop_arrivals"

    def get_type_adapter(self) -> TypeAdapter[StopArrivals]:
        return _STOP_ADAPTER

    async def fetch_data(self, **kwargs: Any) -> StopArrivals:
        stop_id: str = kwargs["stop_id"]
        records = await self.client.get_stop_arrivals(stop_id)
        return StopArrivals.from_dto(self.shaper.shape_stop(records, stop_id=stop_id))


__all__ = ["StationArrivalsRefreshProtocol", "StopArrivalsRefreshProtocol"]
