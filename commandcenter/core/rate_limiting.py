"""Rate Limiting & Caching Strategy.

One policy per upstream. Every adapter looks its policy up here so the
"don't hammer a free-tier API" numbers live in one table.
"""
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class SourcePolicy:
    """Timing policy for one upstream."""
    ttl: timedelta                      # cache freshness window
    cooldown: timedelta = timedelta(minutes=2)
    gap: timedelta | None = None        # queue spacing, only for tight quotas
    timeout: float = 15.0               # seconds per request
    backoff_on_network_error: bool = False

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown.total_seconds()

    @property
    def gap_seconds(self) -> float | None:
        return self.gap.total_seconds() if self.gap is not None else None


SOURCE_POLICIES: dict[str, SourcePolicy] = {
    "yahoo": SourcePolicy(ttl=timedelta(seconds=60), timeout=10.0),
    "coingecko": SourcePolicy(
        ttl=timedelta(seconds=90),
        gap=timedelta(seconds=6),
        timeout=20.0,
    ),
    "polymarket": SourcePolicy(ttl=timedelta(seconds=60), timeout=15.0),
    "fng": SourcePolicy(ttl=timedelta(minutes=5), timeout=10.0),
    "rss": SourcePolicy(ttl=timedelta(minutes=5), timeout=15.0),
    "gdelt": SourcePolicy(
        ttl=timedelta(minutes=10),
        timeout=30.0,
        backoff_on_network_error=True,
    ),
    "acled": SourcePolicy(
        ttl=timedelta(minutes=10),
        timeout=15.0,
        backoff_on_network_error=True,
    ),
    "firms": SourcePolicy(ttl=timedelta(minutes=10), timeout=20.0),
    "opensky": SourcePolicy(ttl=timedelta(seconds=15), timeout=10.0),
    "ais": SourcePolicy(ttl=timedelta(seconds=60), timeout=20.0),
    "cve": SourcePolicy(ttl=timedelta(minutes=10), timeout=15.0),
    "fred": SourcePolicy(ttl=timedelta(minutes=10), timeout=15.0),
}

DEFAULT_POLICY = SourcePolicy(ttl=timedelta(minutes=5))


def get_policy(source: str) -> SourcePolicy:
    """Get the timing policy for a source name."""
    return SOURCE_POLICIES.get(source, DEFAULT_POLICY)
