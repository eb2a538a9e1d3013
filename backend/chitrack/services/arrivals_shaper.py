"""Turn the flat upstream arrival list into display-ready groups."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from chitrack.services.cta_dto import ArrivalRecord, StationGroup, StopGroup
from chitrack.services.time_codec import (
    DEFAULT_CLOCK_SKEW_MS,
    DEFAULT_LOOKBACK_MINUTES,
    filter_relevant,
    instant_sort_key,
    parse_arrival_time,
)

DEFAULT_ARRIVALS_PER_STOP = 3


class ArrivalsShaper:
    """Groups arrivals by station then stop, earliest predictions first.

    Station and stop order follows the first time each id appears in the
    upstream list. Within a stop, arrivals are ordered by parsed arrival
    time (unparseable last) and truncated to ``per_stop``.
    """

    def __init__(
        self,
        per_stop: int = DEFAULT_ARRIVALS_PER_STOP,
        skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
        lookback_minutes: float = DEFAULT_LOOKBACK_MINUTES,
    ) -> None:
        self.per_stop = per_stop
        self.skew_ms = skew_ms
        self.lookback_minutes = lookback_minutes

    def shape_stations(
        self, records: Iterable[ArrivalRecord], now: datetime | None = None
    ) -> list[StationGroup]:
        """Shape a station query result."""
        relevant = self._relevant(records, now)

        stations: dict[str, tuple[str, dict[str, list[ArrivalRecord]]]] = {}
        for record in relevant:
            if record.station_id not in stations:
                stations[record.station_id] = (record.station_name, {})
            stops = stations[record.station_id][1]
            stops.setdefault(record.stop_id, []).append(record)

        return [
            StationGroup(
                station_id=station_id,
                station_name=station_name,
                stops=tuple(
                    self._stop_group(stop_id, stop_records)
                    for stop_id, stop_records in stops.items()
                ),
            )
            for station_id, (station_name, stops) in stations.items()
        ]

    def shape_stop(
        self,
        records: Iterable[ArrivalRecord],
        stop_id: str = "",
        now: datetime | None = None,
    ) -> StopGroup:
        """Shape a single-stop query result.

        An empty input yields an empty group for ``stop_id`` with blank name
        and route rather than an error.
        """
        relevant = self._relevant(records, now)
        if not relevant:
            return StopGroup(stop_id=stop_id, stop_name="", route="", arrivals=())
        return self._stop_group(relevant[0].stop_id or stop_id, relevant)

    def _relevant(
        self, records: Iterable[ArrivalRecord], now: datetime | None
    ) -> list[ArrivalRecord]:
        return filter_relevant(
            records,
            lambda record: parse_arrival_time(record.arrival_time),
            now=now,
            skew_ms=self.skew_ms,
            lookback_minutes=self.lookback_minutes,
        )

    def _stop_group(self, stop_id: str, records: list[ArrivalRecord]) -> StopGroup:
        first = records[0]
        ordered = sorted(
            records,
            key=lambda record: instant_sort_key(parse_arrival_time(record.arrival_time)),
        )
        return StopGroup(
            stop_id=stop_id,
            stop_name=first.stop_description,
            route=first.route,
            arrivals=tuple(ordered[: self.per_stop]),
        )


__all__ = ["ArrivalsShaper", "DEFAULT_ARRIVALS_PER_STOP"]
