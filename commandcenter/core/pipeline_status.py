"""Centralized data pipeline status tracking.

Adapters write a state per named source; status endpoints read it.
Entries are created lazily on first write and live for the process lifetime.
"""
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from commandcenter.core.cache import Clock


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    OK = "ok"
    RATE_LIMITED = "rate-limited"
    ERROR = "error"
    STALE = "stale"


@dataclass(frozen=True)
class PipelineInfo:
    state: PipelineState = PipelineState.IDLE
    message: str = ""
    last_ok: float = 0.0  # wall-clock timestamp of last successful fetch
    using_premium_key: bool = False


# Human-readable flavor text for each pipeline
PIPELINE_LABELS: dict[str, dict[str, str]] = {
    "opensky": {"name": "OpenSky Network", "free": "Anonymous · limited credits", "premium": "OAuth2 · 4,000 credits/day"},
    "coingecko": {"name": "CoinGecko", "free": "Free tier · 10-30 req/min", "premium": "Pro API · 500 req/min"},
    "yahoo": {"name": "Yahoo Finance", "free": "Public endpoint · rate limited", "premium": "RapidAPI · higher limits"},
    "fred": {"name": "FRED", "free": "No key · data unavailable", "premium": "API key · 120 req/min"},
    "firms": {"name": "NASA FIRMS", "free": "Demo key · limited", "premium": "Earthdata key · full access"},
    "ais": {"name": "Digitraffic AIS", "free": "Public · Baltic/Nordic focus", "premium": "AIS-Hub · global coverage"},
    "acled": {"name": "ACLED", "free": "Via GDELT proxy", "premium": "Direct API · full dataset"},
    "gdelt": {"name": "GDELT", "free": "Public · no key needed", "premium": "Public · no key needed"},
    "cve": {"name": "CIRCL CVE", "free": "Public · no key needed", "premium": "Public · no key needed"},
    "polymarket": {"name": "Polymarket", "free": "Public · no key needed", "premium": "Public · no key needed"},
    "fng": {"name": "Fear & Greed", "free": "Public · no key needed", "premium": "Public · no key needed"},
    "rss": {"name": "RSS News", "free": "rss2json · public", "premium": "rss2json · public"},
}


class PipelineStatusRegistry:
    """Process-wide map from source name to PipelineInfo."""

    def __init__(self, wall_clock: Clock = time.time):
        self._clock = wall_clock
        self._pipelines: dict[str, PipelineInfo] = {}
        self._listeners: set[Callable[[], None]] = set()

    def get(self, name: str) -> PipelineInfo:
        return self._pipelines.get(name, PipelineInfo())

    def all(self) -> dict[str, PipelineInfo]:
        return dict(self._pipelines)

    def set_state(
        self,
        name: str,
        state: PipelineState,
        message: str | None = None,
        using_premium_key: bool | None = None,
    ) -> PipelineInfo:
        """Update a pipeline; omitted fields keep their previous value."""
        prev = self._pipelines.get(name, PipelineInfo())
        info = replace(
            prev,
            state=state,
            message=prev.message if message is None else message,
            using_premium_key=prev.using_premium_key if using_premium_key is None else using_premium_key,
        )
        if state == PipelineState.OK:
            info = replace(info, last_ok=self._clock())
        self._pipelines[name] = info
        for listener in list(self._listeners):
            listener()
        return info

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a change listener. Returns the unsubscribe callable."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def status_text(self, name: str) -> str:
        """Status line for a pipeline, e.g. for a widget footer."""
        info = self.get(name)
        label = PIPELINE_LABELS.get(name, {})
        display = label.get("name", name)

        if info.state == PipelineState.LOADING:
            return f"Fetching {display}..."
        if info.state == PipelineState.RATE_LIMITED:
            return f"Rate limited · showing {self._minutes_since_ok(info)}m old data"
        if info.state == PipelineState.ERROR:
            return info.message or f"{display} error"
        if info.state == PipelineState.STALE:
            return f"Stale data ({self._minutes_since_ok(info)}m) · retrying..."
        if info.state == PipelineState.OK:
            if info.using_premium_key:
                return label.get("premium", "Premium")
            return label.get("free", "Free tier")
        return label.get("free", "")

    def _minutes_since_ok(self, info: PipelineInfo) -> int:
        if not info.last_ok:
            return 0
        return round((self._clock() - info.last_ok) / 60)
