"""
Stop arrivals endpoint.

Serves arrivals for a single platform with stale-while-revalidate caching.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request, Response

from chitrack.api.v1.endpoints.arrivals.shared.cache_keys import (
    stop_arrivals_cache_key,
)
from chitrack.api.v1.shared.arrivals_protocols import StopArrivalsRefreshProtocol
from chitrack.api.v1.shared.cache_manager import CacheManager
from chitrack.api.v1.shared.dependencies import get_arrivals_shaper, get_arrivals_store
from chitrack.api.v1.shared.rate_limit import RATE_LIMIT_ARRIVALS, limiter
from chitrack.api.v1.shared.validation import is_header_true, parse_stop_id
from chitrack.core.config import Settings, get_settings
from chitrack.models.arrivals import ErrorResponse, StopArrivals
from chitrack.services.arrivals_cache import ArrivalsCacheStore
from chitrack.services.arrivals_shaper import ArrivalsShaper
from chitrack.services.cta_client import CTAClient, get_cta_client
from chitrack.services.refresh_coordinator import (
    RefreshCoordinator,
    get_refresh_coordinator,
)

router = APIRouter()


@router.get(
    "/arrivals/stop",
    response_model=StopArrivals,
    response_model_exclude_none=True,
    summary="Get upcoming arrivals for a platform",
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit(RATE_LIMIT_ARRIVALS)
async def stop_arrivals(
    request: Request,
    response: Response,
    stop_id: Annotated[
        str | None,
        Query(alias="stopId", description="Platform (stop) id, e.g. '30173'."),
    ] = None,
    x_force_refresh: Annotated[str | None, Header()] = None,
    client: CTAClient = Depends(get_cta_client),
    store: ArrivalsCacheStore = Depends(get_arrivals_store),
    shaper: ArrivalsShaper = Depends(get_arrivals_shaper),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
    settings: Settings = Depends(get_settings),
) -> StopArrivals:
    """Retrieve the next arrivals at one platform."""
    parsed_stop_id = parse_stop_id(stop_id)

    protocol = StopArrivalsRefreshProtocol(client, shaper)
    cache_manager = CacheManager(
        protocol, store, coordinator, settings.arrivals_upstream_failure_policy
    )

    return await cache_manager.get_cached_data(
        cache_key=stop_arrivals_cache_key(parsed_stop_id),
        response=response,
        force_refresh=is_header_true(x_force_refresh),
        requested=f"stopId={parsed_stop_id}",
        stop_id=parsed_stop_id,
    )
