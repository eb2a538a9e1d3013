"""Tests for Train Tracker payload mapping."""

from __future__ import annotations

import pytest

from chitrack.services.cta_errors import CTALogicalError
from chitrack.services.cta_mapping import extract_arrivals, map_arrival
from tests.cta_fixtures import make_eta, make_payload


def test_map_arrival_copies_upstream_fields():
    record = map_arrival(make_eta())

    assert record.station_id == "40380"
    assert record.stop_id == "30374"
    assert record.station_name == "Clark/Lake"
    assert record.stop_description == "Service toward Loop"
    assert record.run_number == "714"
    assert record.route == "Brn"
    assert record.destination_name == "Loop"
    assert record.arrival_time == "20250218 12:45:00"
    assert record.prediction_time == "20250218 12:40:00"
    assert (record.is_approaching, record.is_delayed, record.is_scheduled) == (
        "0",
        "0",
        "0",
    )
    assert record.destination_station_id == "30249"
    assert record.heading == "269"


def test_map_arrival_defaults_missing_optional_fields():
    raw = make_eta()
    for key in ("isFlt", "destSt", "trDr", "lat", "lon", "heading", "isApp"):
        raw.pop(key)

    record = map_arrival(raw)

    assert record.is_fault is None
    assert record.latitude is None
    assert record.heading is None
    assert record.is_approaching == "0"


def test_extract_arrivals_returns_eta_list():
    payload = make_payload([make_eta(rn="1"), make_eta(rn="2")])
    assert [item["rn"] for item in extract_arrivals(payload)] == ["1", "2"]


def test_extract_arrivals_wraps_single_object():
    payload = make_payload([])
    payload["ctatt"]["eta"] = make_eta(rn="9")

    assert [item["rn"] for item in extract_arrivals(payload)] == ["9"]


def test_extract_arrivals_accepts_empty_error_code():
    payload = make_payload([make_eta()], err_cd="")
    assert len(extract_arrivals(payload)) == 1


def test_non_zero_error_code_is_logical_error():
    payload = make_payload([make_eta()], err_cd="101")
    payload["ctatt"]["errNm"] = "Invalid API key"

    with pytest.raises(CTALogicalError) as exc_info:
        extract_arrivals(payload)

    assert exc_info.value.error_code == "101"
    assert exc_info.value.message == "Invalid API key"


def test_missing_eta_is_logical_error():
    payload = make_payload([])
    del payload["ctatt"]["eta"]

    with pytest.raises(CTALogicalError, match="did not return arrivals"):
        extract_arrivals(payload)


@pytest.mark.parametrize("payload", [None, [], {"other": {}}, {"ctatt": "x"}])
def test_unexpected_envelope_is_logical_error(payload):
    with pytest.raises(CTALogicalError):
        extract_arrivals(payload)
