"""Tests for the CTA Train Tracker client."""

from __future__ import annotations

import httpx
import pytest

from chitrack.core.config import Settings
from chitrack.services.cta_client import CTAClient
from chitrack.services.cta_errors import (
    CTAConfigurationError,
    CTALogicalError,
    CTAUpstreamError,
)
from tests.cta_fixtures import make_eta, make_payload


def _client(settings: Settings, handler) -> CTAClient:
    return CTAClient(
        settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


class Recorder:
    def __init__(self, responder):
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


@pytest.mark.asyncio
async def test_station_request_sends_one_mapid_per_station(settings):
    recorder = Recorder(lambda request: httpx.Response(200, json=make_payload([make_eta()])))
    client = _client(settings, recorder)

    records = await client.get_station_arrivals(["40380", "40360"])

    assert len(records) == 1
    assert records[0].station_name == "Clark/Lake"
    params = recorder.requests[0].url.params
    assert params.get_list("mapid") == ["40380", "40360"]
    assert params["key"] == "test-key"
    assert params["outputType"] == "JSON"
    assert params["max"] == "1000"


@pytest.mark.asyncio
async def test_stop_request_uses_stpid(settings):
    recorder = Recorder(lambda request: httpx.Response(200, json=make_payload([])))
    client = _client(settings, recorder)

    assert await client.get_stop_arrivals("30173") == []
    params = recorder.requests[0].url.params
    assert params["stpid"] == "30173"
    assert params["max"] == "10"


@pytest.mark.asyncio
async def test_large_station_sets_are_chunked(settings):
    def respond(request: httpx.Request) -> httpx.Response:
        etas = [make_eta(staId=mapid) for mapid in request.url.params.get_list("mapid")]
        return httpx.Response(200, json=make_payload(etas))

    recorder = Recorder(respond)
    client = _client(settings, recorder)
    ids = [str(40000 + i) for i in range(6)]

    records = await client.get_station_arrivals(ids)

    chunks = sorted(
        (request.url.params.get_list("mapid") for request in recorder.requests), key=len
    )
    assert chunks == [ids[4:], ids[:4]]
    assert sorted(record.station_id for record in records) == ids


@pytest.mark.asyncio
async def test_failing_chunk_fails_the_whole_request(settings):
    def respond(request: httpx.Request) -> httpx.Response:
        if "40005" in request.url.params.get_list("mapid"):
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=make_payload([make_eta()]))

    client = _client(settings, Recorder(respond))

    with pytest.raises(CTAUpstreamError):
        await client.get_station_arrivals([str(40000 + i) for i in range(6)])


@pytest.mark.asyncio
async def test_timeouts_exhaust_three_attempts(settings):
    def respond(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    recorder = Recorder(respond)
    client = _client(settings, recorder)

    with pytest.raises(CTAUpstreamError) as exc_info:
        await client.get_station_arrivals(["40380"])

    assert len(recorder.requests) == 3
    assert exc_info.value.attempts == 3
    assert "timed out" in exc_info.value.details


@pytest.mark.asyncio
async def test_transport_error_recovers_on_retry(settings):
    calls = {"count": 0}

    def respond(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=make_payload([make_eta()]))

    client = _client(settings, respond)

    records = await client.get_station_arrivals(["40380"])

    assert calls["count"] == 2
    assert len(records) == 1


@pytest.mark.asyncio
async def test_http_error_status_is_retried_and_surfaces_last_status(settings):
    recorder = Recorder(lambda request: httpx.Response(500, text="boom"))
    client = _client(settings, recorder)

    with pytest.raises(CTAUpstreamError) as exc_info:
        await client.get_stop_arrivals("30173")

    assert len(recorder.requests) == 3
    assert exc_info.value.status_code == 500
    assert "boom" in exc_info.value.details


@pytest.mark.asyncio
async def test_retry_bound_follows_settings():
    settings = Settings(CTA_TRAIN_API_KEY="test-key", CTA_MAX_RETRIES=0)
    recorder = Recorder(lambda request: httpx.Response(502))
    client = _client(settings, recorder)

    with pytest.raises(CTAUpstreamError):
        await client.get_stop_arrivals("30173")

    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_negative_retry_setting_is_configuration_error(settings):
    recorder = Recorder(lambda request: httpx.Response(200, json=make_payload([])))
    client = _client(settings.model_copy(update={"cta_max_retries": -1}), recorder)

    with pytest.raises(CTAConfigurationError, match="CTA_MAX_RETRIES"):
        await client.get_stop_arrivals("30173")

    assert recorder.requests == []


@pytest.mark.asyncio
async def test_logical_error_is_not_retried(settings):
    payload = make_payload([], err_cd="102")
    payload["ctatt"]["errNm"] = "Invalid mapid"
    recorder = Recorder(lambda request: httpx.Response(200, json=payload))
    client = _client(settings, recorder)

    with pytest.raises(CTALogicalError, match="Invalid mapid"):
        await client.get_station_arrivals(["1"])

    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_non_json_body_is_logical_error(settings):
    recorder = Recorder(lambda request: httpx.Response(200, text="<html></html>"))
    client = _client(settings, recorder)

    with pytest.raises(CTALogicalError):
        await client.get_stop_arrivals("30173")

    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_unsupported_url_propagates_immediately():
    settings = Settings(CTA_TRAIN_API_KEY="test-key", CTA_ARRIVALS_URL="ftp://cta.example")
    client = CTAClient(settings, http_client=httpx.AsyncClient())

    with pytest.raises(httpx.UnsupportedProtocol):
        await client.get_stop_arrivals("30173")

    await client.http_client.aclose()


@pytest.mark.asyncio
async def test_missing_api_key_is_configuration_error():
    settings = Settings(CTA_TRAIN_API_KEY=None)
    recorder = Recorder(lambda request: httpx.Response(200, json=make_payload([])))
    client = _client(settings, recorder)

    with pytest.raises(CTAConfigurationError):
        await client.get_station_arrivals(["40380"])

    assert recorder.requests == []


@pytest.mark.asyncio
async def test_client_closes_only_owned_http_client(settings):
    shared = httpx.AsyncClient()
    async with CTAClient(settings, http_client=shared):
        pass
    assert not shared.is_closed
    await shared.aclose()

    owned = CTAClient(settings)
    await owned.aclose()
    assert owned.http_client.is_closed
