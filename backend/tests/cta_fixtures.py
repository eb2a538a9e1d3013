"""Builders for raw Train Tracker payloads used across tests."""

from __future__ import annotations

from typing import Any


def make_eta(**overrides: Any) -> dict[str, Any]:
    """Build one raw Train Tracker ``eta`` record."""
    record = {
        "staId": "40380",
        "stpId": "30374",
        "staNm": "Clark/Lake",
        "stpDe": "Service toward Loop",
        "rn": "714",
        "rt": "Brn",
        "destSt": "30249",
        "destNm": "Loop",
        "trDr": "5",
        "prdt": "20250218 12:40:00",
        "arrT": "20250218 12:45:00",
        "isApp": "0",
        "isSch": "0",
        "isDly": "0",
        "isFlt": "0",
        "flags": None,
        "lat": "41.88",
        "lon": "-87.63",
        "heading": "269",
    }
    record.update(overrides)
    return record


def make_payload(etas: list[dict[str, Any]], err_cd: str = "0") -> dict[str, Any]:
    """Wrap ``eta`` records in the Train Tracker JSON envelope."""
    return {
        "ctatt": {
            "tmst": "20250218 12:40:00",
            "errCd": err_cd,
            "errNm": None,
            "eta": etas,
        }
    }
