from contextlib import asynccontextmanager
import logging

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from chitrack.api.metrics import router as metrics_router
from chitrack.api.routes import api_router
from chitrack.api.v1.shared.errors import register_exception_handlers
from chitrack.api.v1.shared.rate_limit import limiter
from chitrack.core.config import get_settings
from chitrack.core.telemetry import (
    configure_opentelemetry,
    instrument_fastapi,
    instrument_httpx_client,
)
from chitrack.services.cache import close_valkey_client
from chitrack.services.cta_client import close_cta_client, get_cta_client
from chitrack.services.refresh_coordinator import close_refresh_coordinator

logger = logging.getLogger(__name__)
REQUEST_ID_HEADER = "X-Request-Id"


def _configure_httpx_logging(log_requests: bool) -> None:
    """
    Silence per-request httpx logs unless explicitly enabled.

    httpx logs every request line at INFO, and CTA request URLs carry the API
    key as a query parameter. They only show up when CTA_LOG_REQUESTS=true.
    """
    level = logging.INFO if log_requests else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(level)


def _install_request_id_middleware(app: FastAPI) -> None:
    """Ensure each response includes a stable X-Request-Id header."""

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, str(uuid4()))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings = get_settings()

    tracing = configure_opentelemetry(settings)
    # Outbound CTA calls share one client, so only that client is instrumented
    instrument_httpx_client(get_cta_client().http_client, enabled=tracing)

    yield

    # Background refreshes still write through the CTA and Valkey clients
    await close_refresh_coordinator()
    await close_cta_client()
    await close_valkey_client()


def create_app() -> FastAPI:
    """Application factory for FastAPI."""
    settings = get_settings()
    app = FastAPI(
        title="ChiTrack API",
        description="Cached CTA Train Tracker arrivals for ChiTrack clients.",
        version="0.1.0",
        lifespan=lifespan,
    )

    _configure_httpx_logging(settings.cta_log_requests)

    instrument_fastapi(app, enabled=settings.otel_enabled)
    _install_request_id_middleware(app)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    register_exception_handlers(app)

    allow_origins = settings.cors_allow_origins
    allow_origin_regex = settings.cors_allow_origin_regex
    if allow_origins or allow_origin_regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_origin_regex=allow_origin_regex,
            allow_credentials=bool(allow_origins),
            allow_methods=["GET"],
            allow_headers=["*"],
            expose_headers=[
                "X-Cache",
                "X-Cache-Hit",
                "X-Cache-Age",
                "X-Cache-Fresh",
                REQUEST_ID_HEADER,
            ],
        )

    app.include_router(metrics_router)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()
