"""alternative.me Crypto Fear & Greed index."""
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry


class FearGreedReading(BaseModel):
    value: int  # 0 (extreme fear) .. 100 (extreme greed)
    classification: str
    timestamp: datetime


def parse_readings(payload: Any) -> list[FearGreedReading]:
    entries = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(entries, list) or not entries:
        raise ParseError("fng", "missing data list")
    try:
        return [
            FearGreedReading(
                value=int(entry["value"]),
                classification=entry.get("value_classification", ""),
                timestamp=datetime.fromtimestamp(int(entry["timestamp"]), tz=timezone.utc),
            )
            for entry in entries
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError("fng", "unexpected entry shape") from e


class FearGreedClient:
    SOURCE = "fng"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def get_history(self, limit: int = 1) -> list[FearGreedReading]:
        """Most recent ``limit`` daily readings, newest first."""
        async def produce() -> list[FearGreedReading]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.fng_base_url}/fng/",
                params={"limit": limit},
                timeout=self.source.policy.timeout,
            )
            return parse_readings(payload)

        return await self.source.fetch(f"/fng/?limit={limit}", produce, empty=list)

    async def get_current(self) -> FearGreedReading | None:
        readings = await self.get_history(limit=1)
        return readings[0] if readings else None


# Singleton instance
_client: FearGreedClient | None = None


def get_fear_greed_client() -> FearGreedClient:
    global _client
    if _client is None:
        _client = FearGreedClient(get_registry())
    return _client
