"""Application configuration.

Environment variables are loaded from .env file and can be overridden.
All settings have sensible defaults for local development.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CTA_ARRIVALS_URL = "https://lapi.transitchicago.com/api/1.0/ttarrivals.aspx"


def _valkey_alias(env_name: str) -> AliasChoices:
    """Support both VALKEY_* and REDIS_* env var names for compatibility."""
    redis_name = env_name.replace("VALKEY_", "REDIS_")
    return AliasChoices(redis_name, env_name)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Infrastructure
    # ==========================================================================

    # Environment mode - set to 'production' in production deployments
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment: 'development', 'staging', or 'production'.",
    )

    valkey_url: str = Field(
        default="valkey://localhost:6379/0",
        validation_alias=_valkey_alias("VALKEY_URL"),
    )

    # ==========================================================================
    # CTA Train Tracker upstream
    # ==========================================================================

    cta_api_key: str | None = Field(default=None, alias="CTA_TRAIN_API_KEY")
    cta_arrivals_url: str = Field(default=CTA_ARRIVALS_URL, alias="CTA_ARRIVALS_URL")
    cta_timeout_seconds: float = Field(default=5.0, alias="CTA_TIMEOUT_SECONDS", gt=0)
    cta_max_retries: int = Field(default=2, alias="CTA_MAX_RETRIES", ge=0, le=10)
    cta_max_mapids_per_request: int = Field(
        default=4, alias="CTA_MAX_MAPIDS_PER_REQUEST", ge=1, le=4
    )
    # httpx logs full request URLs (including the API key) at INFO
    cta_log_requests: bool = Field(default=False, alias="CTA_LOG_REQUESTS")

    # ==========================================================================
    # Arrivals cache (seconds)
    # ==========================================================================

    # Served without any refresh while younger than this
    arrivals_fresh_ttl_seconds: int = Field(
        default=15, alias="ARRIVALS_FRESH_TTL_SECONDS"
    )
    # Served immediately with a background refresh while younger than this
    arrivals_stale_ttl_seconds: int = Field(
        default=30, alias="ARRIVALS_STALE_TTL_SECONDS"
    )
    # How long the backing store keeps an entry at all
    arrivals_cache_retention_seconds: int = Field(
        default=300, alias="ARRIVALS_CACHE_RETENTION_SECONDS"
    )
    arrivals_upstream_failure_policy: Literal["error", "serve_expired"] = Field(
        default="error",
        alias="ARRIVALS_UPSTREAM_FAILURE_POLICY",
        description="What a synchronous upstream failure does when only an "
        "expired entry is cached: 'error' or 'serve_expired'.",
    )

    # ==========================================================================
    # Arrivals shaping
    # ==========================================================================

    arrivals_per_stop: int = Field(default=3, alias="ARRIVALS_PER_STOP", ge=1, le=20)
    arrivals_max_station_ids: int = Field(
        default=12, alias="ARRIVALS_MAX_STATION_IDS", ge=1
    )
    arrivals_clock_skew_ms: int = Field(default=5000, alias="ARRIVALS_CLOCK_SKEW_MS")
    arrivals_lookback_minutes: float = Field(
        default=2.0, alias="ARRIVALS_LOOKBACK_MINUTES", ge=0
    )

    # ==========================================================================
    # Cache Behavior
    # ==========================================================================

    cache_circuit_breaker_timeout_seconds: float = Field(
        default=2.0, alias="CACHE_CIRCUIT_BREAKER_TIMEOUT_SECONDS", ge=0.0
    )
    background_refresh_max_in_flight: int = Field(
        default=64, alias="BACKGROUND_REFRESH_MAX_IN_FLIGHT", ge=1
    )

    # ==========================================================================
    # CORS
    # ==========================================================================

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_origin_regex: str | None = Field(
        default=None, alias="CORS_ALLOW_ORIGIN_REGEX"
    )
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_requests_per_minute: int = Field(
        default=60, alias="RATE_LIMIT_REQUESTS_PER_MINUTE", gt=0
    )
    rate_limit_requests_per_hour: int = Field(
        default=1000, alias="RATE_LIMIT_REQUESTS_PER_HOUR", gt=0
    )
    rate_limit_requests_per_day: int = Field(
        default=10000, alias="RATE_LIMIT_REQUESTS_PER_DAY", gt=0
    )

    # ==========================================================================
    # OpenTelemetry (optional)
    # ==========================================================================

    otel_enabled: bool = Field(default=False, alias="OTEL_ENABLED")
    otel_service_name: str = Field(default="chitrack-backend", alias="OTEL_SERVICE_NAME")
    otel_service_version: str = Field(default="0.1.0", alias="OTEL_SERVICE_VERSION")
    otel_exporter_otlp_endpoint: str = Field(
        default="http://jaeger:4317", alias="OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None, alias="OTEL_EXPORTER_OTLP_HEADERS"
    )

    # ==========================================================================
    # Pydantic Settings Config
    # ==========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Any) -> list[str]:
        """Parse comma-separated CORS origins, rejecting wildcard '*'."""
        if isinstance(value, str):
            if not value:
                return []
            parsed = [item.strip() for item in value.split(",") if item.strip()]
        else:
            parsed = list(value) if value is not None else []

        if "*" in parsed:
            raise ValueError(
                "Wildcard CORS origin '*' is not allowed. "
                "Specify explicit origins like 'http://localhost:3000'."
            )
        return parsed

    @model_validator(mode="after")
    def validate_arrival_ttls(self) -> "Settings":
        """Validate that the freshness bands are ordered."""
        for name in (
            "arrivals_fresh_ttl_seconds",
            "arrivals_stale_ttl_seconds",
            "arrivals_cache_retention_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative.")
        if self.arrivals_stale_ttl_seconds < self.arrivals_fresh_ttl_seconds:
            raise ValueError(
                "ARRIVALS_STALE_TTL_SECONDS must be greater than or equal to "
                "ARRIVALS_FRESH_TTL_SECONDS."
            )
        return self

    @model_validator(mode="after")
    def validate_production_security(self) -> "Settings":
        """Validate security-sensitive settings in production environment."""
        if self.environment.lower() == "production" and not self.cta_api_key:
            raise ValueError(
                "CTA_TRAIN_API_KEY must be set in production. "
                "Arrivals cannot be fetched without it."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
