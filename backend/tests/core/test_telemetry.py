"""Tests for OpenTelemetry configuration."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

from opentelemetry import trace

from chitrack.core.config import Settings
from chitrack.core.telemetry import (
    configure_opentelemetry,
    cta_span,
    instrument_fastapi,
    instrument_httpx_client,
)


def _settings(**overrides) -> Settings:
    values = {
        "OTEL_ENABLED": True,
        "OTEL_SERVICE_NAME": "test-service",
        "OTEL_SERVICE_VERSION": "1.0.0",
        "OTEL_EXPORTER_OTLP_ENDPOINT": "http://localhost:4317",
    }
    values.update(overrides)
    return Settings(**values)


class TestConfigureOpenTelemetry:
    """Tests for configure_opentelemetry function."""

    def test_disabled_returns_false(self, caplog):
        """When disabled, should log and not configure anything."""
        with patch("chitrack.core.telemetry.TracerProvider") as mock_provider:
            with caplog.at_level(logging.INFO):
                assert configure_opentelemetry(_settings(OTEL_ENABLED=False)) is False

        mock_provider.assert_not_called()
        assert "tracing is disabled" in caplog.text.lower()

    @patch("chitrack.core.telemetry.set_global_textmap")
    @patch("chitrack.core.telemetry.trace")
    @patch("chitrack.core.telemetry.TracerProvider")
    @patch("chitrack.core.telemetry.OTLPSpanExporter")
    @patch("chitrack.core.telemetry.BatchSpanProcessor")
    def test_enabled_installs_provider(
        self,
        mock_batch_processor,
        mock_exporter,
        mock_tracer_provider,
        mock_trace,
        mock_set_textmap,
    ):
        """When enabled, should install a provider with an OTLP exporter."""
        assert configure_opentelemetry(_settings()) is True

        mock_set_textmap.assert_called_once()
        mock_trace.set_tracer_provider.assert_called_once_with(
            mock_tracer_provider.return_value
        )
        mock_exporter.assert_called_once_with(
            endpoint="http://localhost:4317", headers=None
        )
        mock_tracer_provider.return_value.add_span_processor.assert_called_once_with(
            mock_batch_processor.return_value
        )

    @patch("chitrack.core.telemetry.set_global_textmap")
    @patch("chitrack.core.telemetry.trace")
    @patch("chitrack.core.telemetry.TracerProvider")
    @patch("chitrack.core.telemetry.OTLPSpanExporter")
    @patch("chitrack.core.telemetry.BatchSpanProcessor")
    def test_enabled_passes_headers_to_exporter(
        self,
        mock_batch_processor,
        mock_exporter,
        mock_tracer_provider,
        mock_trace,
        mock_set_textmap,
    ):
        """OTLP headers should be passed to exporter."""
        configure_opentelemetry(
            _settings(OTEL_EXPORTER_OTLP_HEADERS="authorization=Bearer token123")
        )

        call_kwargs = mock_exporter.call_args.kwargs
        assert call_kwargs["headers"] == "authorization=Bearer token123"

    @patch("chitrack.core.telemetry.set_global_textmap")
    def test_enabled_handles_exception(self, mock_set_textmap, caplog):
        """When configuration fails, should log warning and continue."""
        mock_set_textmap.side_effect = RuntimeError("Configuration failed")

        with caplog.at_level(logging.WARNING):
            assert configure_opentelemetry(_settings()) is False

        assert "failed to configure" in caplog.text.lower()


class TestInstrumentFastapi:
    """Tests for instrument_fastapi function."""

    def test_disabled_does_nothing(self):
        with patch("chitrack.core.telemetry.FastAPIInstrumentor") as mock_instrumentor:
            instrument_fastapi(MagicMock(), enabled=False)
            mock_instrumentor.instrument_app.assert_not_called()

    @patch("chitrack.core.telemetry.FastAPIInstrumentor")
    def test_enabled_instruments_app(self, mock_instrumentor, caplog):
        mock_app = MagicMock()

        with caplog.at_level(logging.INFO):
            instrument_fastapi(mock_app, enabled=True)

        mock_instrumentor.instrument_app.assert_called_once_with(mock_app)
        assert "instrumentation enabled" in caplog.text.lower()

    @patch("chitrack.core.telemetry.FastAPIInstrumentor")
    def test_enabled_handles_exception(self, mock_instrumentor, caplog):
        mock_instrumentor.instrument_app.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.WARNING):
            instrument_fastapi(MagicMock(), enabled=True)

        assert "failed to instrument" in caplog.text.lower()


class TestInstrumentHttpxClient:
    """Tests for instrument_httpx_client function."""

    def test_disabled_does_nothing(self):
        with patch("chitrack.core.telemetry.HTTPXClientInstrumentor") as mock_instrumentor:
            instrument_httpx_client(MagicMock(), enabled=False)
            mock_instrumentor.instrument_client.assert_not_called()

    @patch("chitrack.core.telemetry.HTTPXClientInstrumentor")
    def test_enabled_instruments_given_client(self, mock_instrumentor, caplog):
        client = MagicMock()

        with caplog.at_level(logging.INFO):
            instrument_httpx_client(client, enabled=True)

        mock_instrumentor.instrument_client.assert_called_once_with(client)
        assert "httpx" in caplog.text.lower()

    @patch("chitrack.core.telemetry.HTTPXClientInstrumentor")
    def test_enabled_handles_exception(self, mock_instrumentor, caplog):
        mock_instrumentor.instrument_client.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.WARNING):
            instrument_httpx_client(MagicMock(), enabled=True)

        assert "failed to instrument" in caplog.text.lower()


class TestCtaSpan:
    """Tests for the cta_span helper."""

    def test_yields_span_without_configuration(self):
        with cta_span("station_arrivals", mapids="40380") as span:
            assert isinstance(span, trace.Span)

    def test_skips_none_attributes(self):
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch("chitrack.core.telemetry.trace.get_tracer", return_value=tracer):
            with cta_span("stop_arrivals", stop_id="30374", mapids=None):
                pass

        tracer.start_as_current_span.assert_called_once_with("cta.stop_arrivals")
        span.set_attribute.assert_called_once_with("cta.stop_id", "30374")
