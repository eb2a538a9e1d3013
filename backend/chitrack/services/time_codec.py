"""Time parsing and relevance rules for CTA arrival timestamps.

The Train Tracker feed uses two encodings for the same instant:

* a compact local-time string, ``"20230419 08:35:34"``, with no zone
  information (it is Chicago wall-clock time, so it is read in the serving
  host's local zone, which is expected to be America/Chicago), and
* an ISO-8601 string such as ``"2025-02-18T12:43:48"``.

Both resolve to a timezone-aware :class:`datetime`. Anything that cannot be
decoded resolves to ``None``, which sorts last and is never treated as stale.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CLOCK_SKEW_MS = 5000
DEFAULT_LOOKBACK_MINUTES = 2.0

_ISO_SEPARATOR = "T"
_COMPACT_SEPARATOR = " "


def parse_arrival_time(raw: str | None) -> datetime | None:
    """Parse a CTA timestamp into an aware datetime, or ``None`` if unparseable.

    Never raises.
    """
    if not isinstance(raw, str) or not raw:
        return None

    if _ISO_SEPARATOR in raw:
        return _parse_iso(raw)
    return _parse_compact(raw)


def _parse_iso(raw: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    return _as_local_aware(parsed)


def _parse_compact(raw: str) -> datetime | None:
    parts = raw.strip().split(_COMPACT_SEPARATOR)
    if len(parts) < 2:
        return None
    date_part, time_part = parts[0], parts[1]
    if not date_part or not time_part:
        return None
    if len(date_part) != 8 or not date_part.isdigit():
        return None

    time_fields = time_part.split(":")
    if len(time_fields) != 3 or not all(field.isdigit() for field in time_fields):
        return None

    try:
        parsed = datetime(
            int(date_part[0:4]),
            int(date_part[4:6]),
            int(date_part[6:8]),
            int(time_fields[0]),
            int(time_fields[1]),
            int(time_fields[2]),
        )
    except ValueError:
        return None
    return _as_local_aware(parsed)


def _as_local_aware(value: datetime) -> datetime | None:
    """Interpret naive datetimes in the host's local zone."""
    if value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None:
        return value
    try:
        return value.astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def instant_sort_key(instant: datetime | None) -> tuple[bool, float]:
    """Sort key placing unparseable instants after every real one."""
    if instant is None:
        return (True, 0.0)
    return (False, instant.timestamp())


def is_relevant(
    instant: datetime | None,
    now: datetime,
    skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
    lookback_minutes: float = DEFAULT_LOOKBACK_MINUTES,
) -> bool:
    """Return whether an arrival at ``instant`` is still worth showing.

    ``now`` is pushed forward by ``skew_ms`` to absorb disagreement between
    the host clock and the feed, and arrivals up to ``lookback_minutes`` in
    the past are kept. Unparseable instants are always kept.
    """
    if instant is None:
        return True
    if now.tzinfo is None:
        now = now.astimezone()
    corrected_now = now + timedelta(milliseconds=skew_ms)
    delta_minutes = (instant - corrected_now).total_seconds() / 60
    return delta_minutes > -lookback_minutes


def filter_relevant(
    items: Iterable[T],
    instant_of: Callable[[T], datetime | None],
    now: datetime | None = None,
    skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
    lookback_minutes: float = DEFAULT_LOOKBACK_MINUTES,
) -> list[T]:
    """Keep the relevant items, or all of them if none would survive."""
    batch = list(items)
    if not batch:
        return batch

    current = now or datetime.now(timezone.utc)
    kept = [
        item
        for item in batch
        if is_relevant(instant_of(item), current, skew_ms, lookback_minutes)
    ]
    if not kept:
        logger.info(
            "Relevance filter dropped all %d arrivals; serving the unfiltered batch.",
            len(batch),
        )
        return batch
    return kept


__all__ = [
    "filter_relevant",
    "instant_sort_key",
    "is_relevant",
    "parse_arrival_time",
]
