from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from chitrack.services.cta_dto import ArrivalRecord as ArrivalDTO
from chitrack.services.cta_dto import StationGroup as StationGroupDTO
from chitrack.services.cta_dto import StopGroup as StopGroupDTO


class Arrival(BaseModel):
    """One predicted arrival, keyed the way Train Tracker names its fields."""

    model_config = ConfigDict(populate_by_name=True)

    station_id: str = Field(..., alias="staId", description="Parent station id.")
    stop_id: str = Field(..., alias="stpId", description="Platform (stop) id.")
    station_name: str = Field(..., alias="staNm")
    stop_description: str = Field(..., alias="stpDe")
    run_number: str = Field(..., alias="rn")
    route: str = Field(..., alias="rt", description="Route code, e.g. 'Red'.")
    destination_name: str = Field(..., alias="destNm")
    arrival_time: str = Field(
        ..., alias="arrT", description="Predicted arrival time as sent upstream."
    )
    prediction_time: str = Field(..., alias="prdt")
    is_approaching: str = Field(..., alias="isApp")
    is_delayed: str = Field(..., alias="isDly")
    is_scheduled: str = Field(..., alias="isSch")
    is_fault: str | None = Field(None, alias="isFlt")
    destination_station_id: str | None = Field(None, alias="destSt")
    direction_code: str | None = Field(None, alias="trDr")
    latitude: str | None = Field(None, alias="lat")
    longitude: str | None = Field(None, alias="lon")
    heading: str | None = None

    @classmethod
    def from_dto(cls, dto: ArrivalDTO) -> "Arrival":
        return cls(**dto.__dict__)


class StopArrivals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stop_id: str = Field(..., alias="stopId")
    stop_name: str = Field(..., alias="stopName")
    route: str
    arrivals: list[Arrival] = Field(
        default_factory=list, description="Earliest arrivals first."
    )

    @classmethod
    def from_dto(cls, dto: StopGroupDTO) -> "StopArrivals":
        return cls(
            stop_id=dto.stop_id,
            stop_name=dto.stop_name,
            route=dto.route,
            arrivals=[Arrival.from_dto(item) for item in dto.arrivals],
        )


class StationArrivals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    station_id: str = Field(..., alias="stationId")
    station_name: str = Field(..., alias="stationName")
    stops: list[StopArrivals] = Field(default_factory=list)

    @classmethod
    def from_dto(cls, dto: StationGroupDTO) -> "StationArrivals":
        return cls(
            station_id=dto.station_id,
            station_name=dto.station_name,
            stops=[StopArrivals.from_dto(stop) for stop in dto.stops],
        )

    @classmethod
    def from_dtos(cls, groups: Iterable[StationGroupDTO]) -> list["StationArrivals"]:
        return [cls.from_dto(group) for group in groups]


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message.")
    details: str | None = Field(
        None, description="Additional context, such as the requested identifiers."
    )
