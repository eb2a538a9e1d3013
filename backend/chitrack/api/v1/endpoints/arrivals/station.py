"""
Station arrivals endpoint.

Serves arrivals for one or more parent stations with stale-while-revalidate
caching.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request, Response

from chitrack.api.v1.endpoints.arrivals.shared.cache_keys import (
    station_arrivals_cache_key,
)
from chitrack.api.v1.shared.arrivals_protocols import StationArrivalsRefreshProtocol
from chitrack.api.v1.shared.cache_manager import CacheManager
from chitrack.api.v1.shared.dependencies import get_arrivals_shaper, get_arrivals_store
from chitrack.api.v1.shared.rate_limit import RATE_LIMIT_ARRIVALS, limiter
from chitrack.api.v1.shared.validation import is_header_true, parse_station_ids
from chitrack.core.config import Settings, get_settings
from chitrack.models.arrivals import ErrorResponse, StationArrivals
from chitrack.services.arrivals_cache import ArrivalsCacheStore
from chitrack.services.arrivals_shaper import ArrivalsShaper
from chitrack.services.cta_client import CTAClient, get_cta_client
from chitrack.services.refresh_coordinator import (
    RefreshCoordinator,
    get_refresh_coordinator,
)

router = APIRouter()


@router.get(
    "/arrivals/station",
    response_model=list[StationArrivals],
    response_model_exclude_none=True,
    summary="Get upcoming arrivals for parent stations",
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit(RATE_LIMIT_ARRIVALS)
async def station_arrivals(
    request: Request,
    response: Response,
    stations: Annotated[
        str | None,
        Query(description="Comma-separated parent station ids, e.g. '40380,40360'."),
    ] = None,
    mapids: Annotated[
        str | None,
        Query(description="Alias of 'stations'; used when 'stations' is absent."),
    ] = None,
    x_force_refresh: Annotated[str | None, Header()] = None,
    x_allow_background: Annotated[str | None, Header()] = None,
    client: CTAClient = Depends(get_cta_client),
    store: ArrivalsCacheStore = Depends(get_arrivals_store),
    shaper: ArrivalsShaper = Depends(get_arrivals_shaper),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
    settings: Settings = Depends(get_settings),
) -> list[StationArrivals]:
    """Retrieve arrivals grouped by station and platform."""
    station_ids = parse_station_ids(
        stations, mapids, settings.arrivals_max_station_ids
    )

    protocol = StationArrivalsRefreshProtocol(client, shaper)
    cache_manager = CacheManager(
        protocol, store, coordinator, settings.arrivals_upstream_failure_policy
    )

    return await cache_manager.get_cached_data(
        cache_key=station_arrivals_cache_key(station_ids),
        response=response,
        force_refresh=is_header_true(x_force_refresh),
        allow_background=is_header_true(x_allow_background, default=True),
        requested=f"stations={','.join(station_ids)}",
        station_ids=station_ids,
    )
