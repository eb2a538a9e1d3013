from typing import Any

from fastapi import APIRouter, Depends

from chitrack.services.cache import CacheService, get_cache_service
from chitrack.services.refresh_coordinator import (
    RefreshCoordinator,
    get_refresh_coordinator,
)

router = APIRouter()


@router.get("/health")
async def healthcheck(
    cache: CacheService = Depends(get_cache_service),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
) -> dict[str, Any]:
    """Lightweight readiness probe.

    Reports whether the cache is running on its in-memory fallback without
    touching Valkey or the CTA.
    """
    return {
        "status": "ok",
        "cache": "degraded" if cache.circuit_breaker.is_open() else "ok",
        "backgroundRefreshes": len(coordinator),
    }
