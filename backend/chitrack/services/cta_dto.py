"""Data transfer objects used by the CTA client and the arrivals shaper."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ArrivalRecord:
    """One predicted arrival as reported by Train Tracker.

    Time fields and flags are kept exactly as the upstream sent them; flags
    are ``"1"``/``"0"`` strings.
    """

    station_id: str
    stop_id: str
    station_name: str
    stop_description: str
    run_number: str
    route: str
    destination_name: str
    arrival_time: str
    prediction_time: str
    is_approaching: str
    is_delayed: str
    is_scheduled: str
    is_fault: str | None = None
    destination_station_id: str | None = None
    direction_code: str | None = None
    latitude: str | None = None
    longitude: str | None = None
    heading: str | None = None


@dataclass(frozen=True)
class StopGroup:
    """Arrivals for a single platform, earliest first."""

    stop_id: str
    stop_name: str
    route: str
    arrivals: tuple[ArrivalRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StationGroup:
    """All platforms of a parent station in first-seen order."""

    station_id: str
    station_name: str
    stops: tuple[StopGroup, ...] = field(default_factory=tuple)


__all__ = ["ArrivalRecord", "StationGroup", "StopGroup"]
