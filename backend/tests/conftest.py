from __future__ import annotations

import json
import os
import sys
import time
from pathlib import Path
from typing import Any, Iterator

# Must be set before the rate limiter module reads settings.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("CTA_TRAIN_API_KEY", "test-key")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from chitrack.api.v1.shared.dependencies import get_arrivals_store  # noqa: E402
from chitrack.core.config import Settings, get_settings  # noqa: E402
from chitrack.main import create_app  # noqa: E402
from chitrack.services.arrivals_cache import ArrivalsCacheStore  # noqa: E402
from chitrack.services.cache import CacheService, get_cache_service  # noqa: E402
from chitrack.services.cache_ttl_config import TTLConfig  # noqa: E402
from chitrack.services.cta_client import CTAClient, get_cta_client  # noqa: E402
from chitrack.services.refresh_coordinator import (  # noqa: E402
    RefreshCoordinator,
    get_refresh_coordinator,
)
from tests.cta_fixtures import make_eta, make_payload  # noqa: E402


class FakeValkey:
    """In-memory Valkey replacement used for tests."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}
        self.should_fail = False
        self.closed = False

    def _prune(self) -> None:
        now = time.monotonic()
        expired = [
            key
            for key, (_, expires_at) in self._store.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            self._store.pop(key, None)

    def _check(self) -> None:
        self._prune()
        if self.should_fail:
            raise RuntimeError("valkey unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        record = self._store.get(key)
        if record is None:
            return None
        value, _ = record
        return value

    async def set(
        self,
        key: str,
        value: str,
        ex: int | None = None,
        nx: bool | None = None,
    ) -> bool:
        self._check()
        if nx and key in self._store:
            return False
        expires_at = time.monotonic() + ex if ex else None
        self._store[key] = (value, expires_at)
        return True

    async def eval(self, script: str, numkeys: int, *args: Any) -> int:
        """Emulate the version-checked write script."""
        self._check()
        key, value, version_field, version, ttl = args
        record = self._store.get(key)
        if record is not None:
            try:
                existing = json.loads(record[0]).get(version_field)
            except (ValueError, AttributeError):
                existing = None
            if existing is not None and float(existing) > float(version):
                return 0
        ttl = int(ttl)
        expires_at = time.monotonic() + ttl if ttl > 0 else None
        self._store[key] = (value, expires_at)
        return 1

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        CTA_TRAIN_API_KEY="test-key",
        ARRIVALS_FRESH_TTL_SECONDS=15,
        ARRIVALS_STALE_TTL_SECONDS=30,
    )


@pytest.fixture()
def fake_valkey() -> FakeValkey:
    return FakeValkey()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache_service(fake_valkey: FakeValkey, settings: Settings) -> CacheService:
    return CacheService(fake_valkey, TTLConfig(settings))


@pytest.fixture()
def arrivals_store(
    cache_service: CacheService, settings: Settings, fake_clock: FakeClock
) -> ArrivalsCacheStore:
    return ArrivalsCacheStore(cache_service, TTLConfig(settings), clock=fake_clock)


@pytest.fixture()
def coordinator() -> RefreshCoordinator:
    return RefreshCoordinator(max_in_flight=8)


class UpstreamStub:
    """Scripted CTA upstream served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.payload: dict[str, Any] = make_payload([make_eta()])
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def client(self, settings: Settings) -> CTAClient:
        return CTAClient(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )


@pytest.fixture()
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture()
def cta_client(upstream: UpstreamStub, settings: Settings) -> CTAClient:
    return upstream.client(settings)


@pytest.fixture()
def api_client(
    settings: Settings,
    arrivals_store: ArrivalsCacheStore,
    cache_service: CacheService,
    cta_client: CTAClient,
    coordinator: RefreshCoordinator,
) -> Iterator[TestClient]:
    """Create a test client backed by the fake cache and a stub upstream.

    The client is entered as a context manager so that background refreshes
    keep running on its event loop between requests.
    """
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_cache_service] = lambda: cache_service
    app.dependency_overrides[get_arrivals_store] = lambda: arrivals_store
    app.dependency_overrides[get_cta_client] = lambda: cta_client
    app.dependency_overrides[get_refresh_coordinator] = lambda: coordinator
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
