"""Shared per-source state, constructed once and passed to every adapter."""
import time

import httpx

from commandcenter.config import Settings, get_settings
from commandcenter.core.cache import Clock
from commandcenter.core.pipeline_status import PipelineStatusRegistry
from commandcenter.core.rate_limiting import SourcePolicy, get_policy
from commandcenter.core.source import Source
from commandcenter.services.credentials import CredentialProvider, SettingsCredentialProvider


class SourceRegistry:
    """One Source per upstream name, plus the shared HTTP client and status map."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: httpx.AsyncClient | None = None,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
        credentials: CredentialProvider | None = None,
        policies: dict[str, SourcePolicy] | None = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.wall_clock = wall_clock
        self.http = http or httpx.AsyncClient(
            headers={"User-Agent": self.settings.user_agent, "Accept": "application/json"},
            follow_redirects=True,
        )
        self.status = PipelineStatusRegistry(wall_clock)
        self.credentials = credentials or SettingsCredentialProvider(self.settings)
        self._policies = policies or {}
        self._sources: dict[str, Source] = {}

    def source(self, name: str) -> Source:
        """Get or create the Source for ``name``."""
        source = self._sources.get(name)
        if source is None:
            policy = self._policies.get(name) or get_policy(name)
            source = Source(name, policy, self.status, self.clock)
            self._sources[name] = source
        return source

    @property
    def sources(self) -> dict[str, Source]:
        return dict(self._sources)

    async def aclose(self) -> None:
        await self.http.aclose()


# Singleton instance
_registry: SourceRegistry | None = None


def get_registry() -> SourceRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = SourceRegistry()
    return _registry


async def close_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.aclose()
        _registry = None
