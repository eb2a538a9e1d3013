from fastapi import APIRouter

from chitrack.api.v1.endpoints.arrivals import router as arrivals_router
from chitrack.api.v1.endpoints.health import router as health_router

router = APIRouter()
router.include_router(health_router, tags=["meta"])
router.include_router(arrivals_router)
