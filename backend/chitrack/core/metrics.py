from __future__ import annotations

from prometheus_client import Counter, Histogram

CACHE_EVENTS = Counter(
    "chitrack_cache_events_total",
    "Cache operations recorded by ChiTrack.",
    labelnames=("cache", "event"),
)
CACHE_REFRESH_LATENCY = Histogram(
    "chitrack_cache_refresh_seconds",
    "Latency of cache refresh operations.",
    labelnames=("cache",),
)
CTA_REQUESTS = Counter(
    "chitrack_cta_requests_total",
    "Outbound CTA Train Tracker requests.",
    labelnames=("endpoint", "result"),
)
CTA_REQUEST_LATENCY = Histogram(
    "chitrack_cta_request_seconds",
    "Latency of outbound CTA Train Tracker requests.",
    labelnames=("endpoint",),
)
CTA_REQUEST_ATTEMPTS = Counter(
    "chitrack_cta_request_attempts_total",
    "Individual CTA request attempts, including retries.",
    labelnames=("endpoint", "outcome"),
)


def record_cache_event(cache: str, event: str) -> None:
    """Increment a cache event counter."""
    CACHE_EVENTS.labels(cache=cache, event=event).inc()


def observe_cache_refresh(cache: str, duration_seconds: float) -> None:
    """Record cache refresh latency."""
    CACHE_REFRESH_LATENCY.labels(cache=cache).observe(duration_seconds)


def observe_cta_request(endpoint: str, result: str, duration_seconds: float) -> None:
    """Record CTA request result and latency."""
    CTA_REQUESTS.labels(endpoint=endpoint, result=result).inc()
    CTA_REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration_seconds)


def record_cta_attempt(endpoint: str, outcome: str) -> None:
    """Record a single CTA request attempt."""
    CTA_REQUEST_ATTEMPTS.labels(endpoint=endpoint, outcome=outcome).inc()
