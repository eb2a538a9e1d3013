"""OpenTelemetry configuration and initialization."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import httpx
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.b3 import B3MultiFormat
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from chitrack.core.config import Settings

logger = logging.getLogger(__name__)

_TRACER_NAME = "chitrack"


def configure_opentelemetry(settings: Settings) -> bool:
    """Configure OpenTelemetry tracing for the application.

    Returns:
        True when a tracer provider was installed.
    """
    if not settings.otel_enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return False

    try:
        set_global_textmap(B3MultiFormat())

        resource = Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": settings.otel_service_version,
                "service.namespace": "chitrack",
            }
        )
        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)

        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=settings.otel_exporter_otlp_headers,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        logger.info(
            "OpenTelemetry configured for service '%s' (OTLP endpoint %s)",
            settings.otel_service_name,
            settings.otel_exporter_otlp_endpoint,
        )
        return True
    except Exception as exc:
        logger.warning("Failed to configure OpenTelemetry: %s", exc)
        logger.info("Application will continue without tracing")
        return False


def instrument_fastapi(app: Any, enabled: bool = False) -> None:
    """Instrument FastAPI application for tracing."""
    if not enabled:
        return

    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as exc:
        logger.warning("Failed to instrument FastAPI: %s", exc)


def instrument_httpx_client(client: httpx.AsyncClient, enabled: bool = False) -> None:
    """Instrument the shared upstream httpx client for outbound tracing."""
    if not enabled:
        return

    try:
        HTTPXClientInstrumentor.instrument_client(client)
        logger.info("HTTPX client instrumentation enabled")
    except Exception as exc:
        logger.warning("Failed to instrument HTTPX client: %s", exc)


@contextmanager
def cta_span(name: str, **attributes: Any) -> Iterator[trace.Span]:
    """Open a span around one CTA upstream operation.

    Falls back to the no-op tracer when tracing is not configured, so
    callers never need to check whether telemetry is enabled.
    """
    tracer = trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(f"cta.{name}") as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"cta.{key}", value)
        yield span
