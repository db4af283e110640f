"""Shared fixtures: a controllable clock and registries wired to mock upstreams."""
from collections.abc import Callable

import httpx
import pytest

from commandcenter.config import Settings
from commandcenter.core.rate_limiting import SourcePolicy
from commandcenter.core.registry import SourceRegistry
from commandcenter.services.credentials import ApiKey


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticCredentials:
    """Credential provider backed by a plain dict."""

    def __init__(self, keys: dict[str, ApiKey] | None = None):
        self.keys = keys or {}

    async def get_api_key_with_name(self, source: str) -> ApiKey | None:
        return self.keys.get(source)


class MockUpstream:
    """Records every request and answers through ``handler``."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def calls_to(self, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if fragment in str(r.url)]

    @property
    def count(self) -> int:
        return len(self.requests)


@pytest.fixture
def settings() -> Settings:
    """Settings with no .env and no credentials."""
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def make_registry(settings, clock, wall_clock):
    """Factory: registry whose HTTP client talks to a MockUpstream."""

    def factory(
        upstream: MockUpstream,
        credentials: dict[str, ApiKey] | None = None,
        policies: dict[str, SourcePolicy] | None = None,
    ) -> SourceRegistry:
        return SourceRegistry(
            settings=settings,
            http=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
            clock=clock,
            wall_clock=wall_clock,
            credentials=StaticCredentials(credentials),
            policies=policies,
        )

    return factory
