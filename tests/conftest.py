"""
Pytest fixtures shared across the unit suites.

Environment variables are set before any mediahub module is imported so the
module-level Settings instance picks them up.
"""
from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-for-unit-tests-only-0123456789")
# Cheap scrypt cost keeps vault round trips fast under test
os.environ.setdefault("ENCRYPTION_SCRYPT_N", "1024")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Callable, Dict, List, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from mediahub.core.retry import RetryPolicy  # noqa: E402
from mediahub.integrations.schemas import ServiceConfiguration  # noqa: E402
from mediahub.integrations.session_cache import SessionCache, reset_session_cache  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryConfigStore:
    """Minimal configuration store keyed by (user_id, service_name)."""

    def __init__(self, *configs: ServiceConfiguration):
        self._configs: Dict[tuple, ServiceConfiguration] = {}
        self.get_calls = 0
        for config in configs:
            self.add(config)

    def add(self, config: ServiceConfiguration) -> None:
        self._configs[(config.user_id, config.service_name)] = config

    def get(self, user_id: str, service_name: str) -> Optional[ServiceConfiguration]:
        self.get_calls += 1
        return self._configs.get((user_id, service_name))


class RecordingTransport:
    """
    httpx.MockTransport wrapper that records every request.

    The handler receives the httpx.Request and returns an httpx.Response.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture(autouse=True)
def fresh_session_cache():
    """Each test starts with an empty process-wide session cache."""
    reset_session_cache()
    yield
    reset_session_cache()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_cache(fake_clock: FakeClock) -> SessionCache:
    return SessionCache(ttl_seconds=3300, clock=fake_clock)


@pytest.fixture
def no_delay_retry_policy() -> RetryPolicy:
    """Retry policy with zero backoff so retry tests run instantly."""
    return RetryPolicy(max_retries=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def make_config() -> Callable[..., ServiceConfiguration]:
    def _make(service_name: str = "radarr", **overrides) -> ServiceConfiguration:
        values = {
            "user_id": "user-1",
            "service_name": service_name,
            "base_url": f"http://{service_name}.local:8080",
            "api_key": "test-api-key",
            "is_enabled": True,
        }
        values.update(overrides)
        return ServiceConfiguration(**values)

    return _make


@pytest.fixture
def make_store() -> Callable[..., InMemoryConfigStore]:
    return InMemoryConfigStore


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    return RecordingTransport
