"""Input validation utilities for the arrivals endpoints."""

import re

from chitrack.services.cta_errors import InvalidRequestError

_IDENTIFIER = re.compile(r"^\d{1,10}$")
_TRUE_VALUES = {"true", "1", "yes"}


def parse_station_ids(
    stations: str | None, mapids: str | None, max_ids: int
) -> list[str]:
    """Parse the comma-separated station parameter.

    ``stations`` wins over ``mapids`` when both are present. Fragments are
    trimmed, empty ones dropped and duplicates collapsed in first-seen order.
    """
    raw = stations if stations and stations.strip() else mapids
    if not raw or not raw.strip():
        raise InvalidRequestError("Missing or invalid station IDs")

    station_ids: list[str] = []
    for fragment in raw.split(","):
        candidate = fragment.strip()
        if not candidate or candidate in station_ids:
            continue
        if not _IDENTIFIER.match(candidate):
            raise InvalidRequestError(f"Invalid station ID: '{candidate}'")
        station_ids.append(candidate)

    if not station_ids:
        raise InvalidRequestError("Missing or invalid station IDs")
    if len(station_ids) > max_ids:
        raise InvalidRequestError(
            f"Too many station IDs: {len(station_ids)} requested, at most {max_ids} allowed"
        )
    return station_ids


def parse_stop_id(stop_id: str | None) -> str:
    """Validate the single platform identifier."""
    candidate = (stop_id or "").strip()
    if not candidate:
        raise InvalidRequestError("Missing stop ID")
    if not _IDENTIFIER.match(candidate):
        raise InvalidRequestError(f"Invalid stop ID: '{candidate}'")
    return candidate


def is_header_true(value: str | None, default: bool = False) -> bool:
    """Interpret a boolean request header; absent means ``default``."""
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES
