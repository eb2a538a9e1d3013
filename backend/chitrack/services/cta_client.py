"""Async client for the CTA Train Tracker arrivals API.

The client is a pure reliability wrapper: it enforces the per-attempt
timeout and the retry bound, validates the response envelope and maps the
raw ``eta`` records. It knows nothing about caching or response shaping.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

import httpx

from chitrack.core.config import Settings, get_settings
from chitrack.core.metrics import observe_cta_request, record_cta_attempt
from chitrack.core.telemetry import cta_span
from chitrack.services.cta_dto import ArrivalRecord
from chitrack.services.cta_errors import (
    CTAConfigurationError,
    CTALogicalError,
    CTAServiceError,
    CTATimeoutError,
    CTATransportError,
    CTAUpstreamError,
)
from chitrack.services.cta_mapping import extract_arrivals, map_arrival

logger = logging.getLogger(__name__)

USER_AGENT = "ChiTrack/1.0"
STATION_ARRIVALS_MAX = "1000"
STOP_ARRIVALS_MAX = "10"

_ERROR_BODY_LIMIT = 500


class CTAClient:
    """Async wrapper for the Train Tracker arrivals endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._settings.cta_timeout_seconds,
            headers={"User-Agent": USER_AGENT},
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._client

    async def __aenter__(self) -> "CTAClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_station_arrivals(
        self, station_ids: Sequence[str]
    ) -> list[ArrivalRecord]:
        """Fetch arrivals for parent stations (``mapid``).

        Train Tracker accepts a limited number of ``mapid`` values per call, so
        larger requests are split into chunks that are fetched concurrently.
        Any failing chunk fails the whole request.
        """
        ids = list(station_ids)
        chunk_size = self._settings.cta_max_mapids_per_request
        chunks = [ids[i : i + chunk_size] for i in range(0, len(ids), chunk_size)]

        if len(chunks) <= 1:
            return await self._fetch_arrivals(
                "station_arrivals", self._station_params(ids)
            )

        results = await asyncio.gather(
            *(
                self._fetch_arrivals("station_arrivals", self._station_params(chunk))
                for chunk in chunks
            ),
            return_exceptions=True,
        )
        records: list[ArrivalRecord] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to fetch arrivals for stations %s: %s",
                    ",".join(chunk),
                    result,
                )
                raise result
            records.extend(result)
        return records

    async def get_stop_arrivals(self, stop_id: str) -> list[ArrivalRecord]:
        """Fetch arrivals for a single platform (``stpid``)."""
        params = [
            *self._base_params(),
            ("stpid", stop_id),
            ("max", STOP_ARRIVALS_MAX),
        ]
        return await self._fetch_arrivals("stop_arrivals", params)

    async def fetch(
        self, params: Sequence[tuple[str, str]], *, endpoint: str = "arrivals"
    ) -> httpx.Response:
        """Issue one logical upstream request with timeout and retry discipline.

        Timeouts, network-level failures and non-success statuses are retried
        immediately up to ``cta_max_retries`` times. Malformed requests
        (invalid URL, unsupported scheme) propagate on the first attempt.

        Raises:
            CTAUpstreamError: Every attempt failed.
        """
        url = self._settings.cta_arrivals_url
        timeout = self._settings.cta_timeout_seconds
        attempts = self._settings.cta_max_retries + 1
        last_error: CTAServiceError | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await asyncio.wait_for(
                    self._client.get(url, params=list(params)), timeout=timeout
                )
            except httpx.UnsupportedProtocol:
                record_cta_attempt(endpoint, "invalid_request")
                raise
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                last_error = CTATimeoutError(
                    f"CTA request timed out after {timeout:g}s.", details=str(exc)
                )
                record_cta_attempt(endpoint, "timeout")
            except httpx.TransportError as exc:
                last_error = CTATransportError(
                    "Failed to reach CTA Arrivals API.", details=str(exc)
                )
                record_cta_attempt(endpoint, "transport_error")
            else:
                if response.is_success:
                    record_cta_attempt(endpoint, "success")
                    return response
                last_error = CTATransportError(
                    f"CTA Arrivals API responded with HTTP {response.status_code}.",
                    status_code=response.status_code,
                    details=response.text[:_ERROR_BODY_LIMIT],
                )
                record_cta_attempt(endpoint, "http_error")

            logger.warning(
                "CTA %s attempt %d/%d failed: %s",
                endpoint,
                attempt,
                attempts,
                last_error,
            )

        if last_error is None:
            # Only reachable when the retry setting bypassed validation
            raise CTAConfigurationError("CTA_MAX_RETRIES cannot be negative.")
        raise CTAUpstreamError(
            "Failed to fetch data from CTA Arrivals API.",
            attempts=attempts,
            status_code=last_error.status_code,
            details=f"{last_error.message} {last_error.details or ''}".strip(),
        ) from last_error

    async def _fetch_arrivals(
        self, endpoint: str, params: list[tuple[str, str]]
    ) -> list[ArrivalRecord]:
        if not self._settings.cta_api_key:
            raise CTAConfigurationError("CTA_TRAIN_API_KEY not set in environment.")

        start = time.perf_counter()
        with cta_span(endpoint, attempts_allowed=self._settings.cta_max_retries + 1):
            try:
                response = await self.fetch(params, endpoint=endpoint)
            except CTAServiceError:
                observe_cta_request(endpoint, "error", time.perf_counter() - start)
                raise

            try:
                payload: Any = response.json()
            except ValueError as exc:
                observe_cta_request(endpoint, "invalid", time.perf_counter() - start)
                raise CTALogicalError(
                    "CTA API returned a response that is not JSON.",
                    details=response.text[:_ERROR_BODY_LIMIT],
                ) from exc

            try:
                raw_arrivals = extract_arrivals(payload)
            except CTALogicalError:
                observe_cta_request(endpoint, "logical_error", time.perf_counter() - start)
                raise

        observe_cta_request(endpoint, "success", time.perf_counter() - start)
        return [map_arrival(item) for item in raw_arrivals]

    def _base_params(self) -> list[tuple[str, str]]:
        return [
            ("key", self._settings.cta_api_key or ""),
            ("outputType", "JSON"),
        ]

    def _station_params(self, station_ids: Sequence[str]) -> list[tuple[str, str]]:
        return [
            *self._base_params(),
            ("max", STATION_ARRIVALS_MAX),
            *(("mapid", station_id) for station_id in station_ids),
        ]


@lru_cache
def get_cta_client() -> CTAClient:
    """Return the process-wide CTA client."""
    return CTAClient(get_settings())


async def close_cta_client() -> None:
    """Close the process-wide CTA client if it was created."""
    if get_cta_client.cache_info().currsize:
        await get_cta_client().aclose()
        get_cta_client.cache_clear()


__all__ = [
    "CTAClient",
    "close_cta_client",
    "get_cta_client",
    "ArrivalRecord",
    "CTAServiceError",
    "CTAUpstreamError",
    "CTALogicalError",
]
