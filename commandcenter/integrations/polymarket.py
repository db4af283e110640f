"""Polymarket client for prediction market data.

Uses the Gamma API for event discovery. No authentication required for
read-only access.
"""
import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry


class PolymarketMarket(BaseModel):
    """Polymarket market model."""
    id: str
    question: str
    outcomes: list[str]
    outcome_prices: list[float]
    volume: float | None = None
    liquidity: float | None = None

    @property
    def yes_price(self) -> float | None:
        """Get YES price (first outcome)."""
        return self.outcome_prices[0] if self.outcome_prices else None

    @property
    def no_price(self) -> float | None:
        """Get NO price (second outcome)."""
        return self.outcome_prices[1] if len(self.outcome_prices) > 1 else None


class PolymarketEvent(BaseModel):
    """Polymarket event summarized by its lead market."""
    id: str
    title: str
    slug: str | None = None
    yes_price: float = 0.5
    no_price: float = 0.5
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: datetime | None = None
    category: str = "other"
    markets: list[PolymarketMarket] = []


CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("crypto", ("bitcoin", "crypto", "ethereum", "btc", "eth")),
    ("politics", ("trump", "biden", "election", "president", "congress", "senate")),
    ("sports", ("nfl", "nba", "super bowl", "world cup", "ufc")),
    ("tech", (" ai ", "apple", "google", "tesla", "openai")),
]


def categorize(title: str) -> str:
    """Keyword category for an event title."""
    padded = f" {title.lower()} "
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in padded for k in keywords):
            return category
    return "other"


def _json_list(value: Any) -> list:
    """Gamma encodes some list fields as JSON strings."""
    if isinstance(value, str):
        return json.loads(value) if value else []
    return value or []


def parse_market(raw_market: dict) -> PolymarketMarket:
    """Parse raw market data into PolymarketMarket model."""
    outcomes = _json_list(raw_market.get("outcomes", "[]"))
    prices = _json_list(raw_market.get("outcomePrices", "[]"))

    return PolymarketMarket(
        id=str(raw_market.get("id", "")),
        question=raw_market.get("question", ""),
        outcomes=outcomes,
        outcome_prices=[float(p) for p in prices],
        volume=float(raw_market.get("volume", 0) or 0),
        liquidity=float(raw_market.get("liquidity", 0) or 0),
    )


def parse_events(payload: Any) -> list[PolymarketEvent]:
    if not isinstance(payload, list):
        raise ParseError("polymarket", "expected an event list")

    events = []
    for raw in payload:
        raw_markets = raw.get("markets") if isinstance(raw, dict) else None
        if not raw_markets:
            continue
        try:
            markets = [parse_market(m) for m in raw_markets]
            lead = markets[0]
            title = raw.get("title", "")
            events.append(PolymarketEvent(
                id=str(raw.get("id", "")),
                title=title,
                slug=raw.get("slug"),
                yes_price=lead.yes_price or 0.5,
                no_price=lead.no_price or 0.5,
                volume=float(raw.get("volume") or lead.volume or 0),
                liquidity=float(raw.get("liquidity") or lead.liquidity or 0),
                end_date=raw.get("endDate") or None,
                category=categorize(title),
                markets=markets,
            ))
        except (TypeError, ValueError, AttributeError, ValidationError) as e:
            raise ParseError("polymarket", f"bad event {raw.get('id')}") from e
    return events


class PolymarketClient:
    """Client for the Polymarket Gamma API (read-only)."""

    SOURCE = "polymarket"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def get_events(self, limit: int = 20, category: str | None = None) -> list[PolymarketEvent]:
        """Newest open events, optionally filtered by keyword category."""
        params = {
            "order": "id",
            "ascending": "false",
            "closed": "false",
            "limit": limit,
        }

        async def produce() -> list[PolymarketEvent]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.polymarket_base_url}/events",
                params=params,
                timeout=self.source.policy.timeout,
            )
            return parse_events(payload)

        events = await self.source.fetch(f"/events?limit={limit}", produce, empty=list)
        if category and category != "all":
            return [e for e in events if e.category == category]
        return events


# Singleton instance
_client: PolymarketClient | None = None


def get_polymarket_client() -> PolymarketClient:
    """Get or create Polymarket client instance."""
    global _client
    if _client is None:
        _client = PolymarketClient(get_registry())
    return _client
