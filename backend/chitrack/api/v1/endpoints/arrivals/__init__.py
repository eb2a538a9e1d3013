"""
Arrivals endpoints package.

- station.py: /arrivals/station endpoint (parent stations, ``mapid``)
- stop.py: /arrivals/stop endpoint (single platform, ``stpid``)

Both endpoints are thin adapters over the same cache manager and differ
only in the refresh protocol they select.
"""

from fastapi import APIRouter

from chitrack.api.v1.endpoints.arrivals.station import router as station_router
from chitrack.api.v1.endpoints.arrivals.stop import router as stop_router

router = APIRouter()

router.include_router(station_router, tags=["arrivals"])
router.include_router(stop_router, tags=["arrivals"])

__all__ = ["router"]
