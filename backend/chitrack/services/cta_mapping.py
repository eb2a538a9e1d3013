"""Pure mapping utilities for CTA Train Tracker payloads."""

from __future__ import annotations

from typing import Any

from chitrack.services.cta_dto import ArrivalRecord
from chitrack.services.cta_errors import CTALogicalError

_ENVELOPE_KEY = "ctatt"
_ARRIVALS_KEY = "eta"
_OK_ERROR_CODES = {"", "0"}


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def map_arrival(data: dict[str, Any]) -> ArrivalRecord:
    """Map one raw ``eta`` entry to an ArrivalRecord."""
    return ArrivalRecord(
        station_id=_text(data.get("staId")),
        stop_id=_text(data.get("stpId")),
        station_name=_text(data.get("staNm")),
        stop_description=_text(data.get("stpDe")),
        run_number=_text(data.get("rn")),
        route=_text(data.get("rt")),
        destination_name=_text(data.get("destNm")),
        arrival_time=_text(data.get("arrT")),
        prediction_time=_text(data.get("prdt")),
        is_approaching=_text(data.get("isApp"), "0"),
        is_delayed=_text(data.get("isDly"), "0"),
        is_scheduled=_text(data.get("isSch"), "0"),
        is_fault=_optional_text(data.get("isFlt")),
        destination_station_id=_optional_text(data.get("destSt")),
        direction_code=_optional_text(data.get("trDr")),
        latitude=_optional_text(data.get("lat")),
        longitude=_optional_text(data.get("lon")),
        heading=_optional_text(data.get("heading")),
    )


def extract_arrivals(payload: Any) -> list[dict[str, Any]]:
    """Return the raw ``ctatt.eta`` list, validating the envelope.

    Raises:
        CTALogicalError: The envelope is malformed, reports a non-zero error
            code, or carries no arrivals field.
    """
    if not isinstance(payload, dict) or not isinstance(
        payload.get(_ENVELOPE_KEY), dict
    ):
        raise CTALogicalError(
            "CTA API returned an unexpected payload.", details=payload
        )

    envelope = payload[_ENVELOPE_KEY]
    error_code = _text(envelope.get("errCd")).strip()
    if error_code not in _OK_ERROR_CODES:
        message = _text(envelope.get("errNm")) or "CTA API reported an error."
        raise CTALogicalError(message, error_code=error_code, details=envelope)

    arrivals = envelope.get(_ARRIVALS_KEY)
    if arrivals is None:
        raise CTALogicalError(
            "CTA API did not return arrivals (eta). Possibly an error.",
            details=envelope,
        )
    if isinstance(arrivals, dict):
        arrivals = [arrivals]
    if not isinstance(arrivals, list):
        raise CTALogicalError(
            "CTA API returned a malformed arrivals field.", details=envelope
        )
    return [item for item in arrivals if isinstance(item, dict)]


__all__ = ["extract_arrivals", "map_arrival"]
