"""CoinGecko client for crypto market data.

Free tier allows ~10-30 req/min, so every request goes through the source's
rate-limited queue (6s gap) and responses are cached for 90s under a
normalized path key. The top-50 markets snapshot is shared: one request
serves every widget that asks for it concurrently.
"""
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.cache import normalize_request_key
from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

MARKETS_PATH = (
    "/api/v3/coins/markets?vs_currency=usd&order=market_cap_desc&per_page=50"
    "&sparkline=false&price_change_percentage=24h%2C7d%2C30d"
)
GLOBAL_PATH = "/api/v3/global"


class CoinMarket(BaseModel):
    """One row of /coins/markets."""
    id: str
    symbol: str
    name: str
    image: str | None = None
    current_price: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: int | None = None
    total_volume: float = 0.0
    price_change_percentage_24h: float | None = None
    price_change_percentage_7d: float | None = None
    price_change_percentage_30d: float | None = None


class GlobalMarket(BaseModel):
    """Market-wide stats from /global."""
    total_market_cap_usd: float | None = None
    total_volume_usd: float | None = None
    btc_dominance: float | None = None
    eth_dominance: float | None = None
    market_cap_change_24h: float | None = None
    active_cryptocurrencies: int | None = None


def parse_markets(payload: Any) -> list[CoinMarket]:
    if not isinstance(payload, list) or not payload:
        raise ParseError("coingecko", "expected a non-empty market list")
    try:
        return [
            CoinMarket(
                id=row["id"],
                symbol=row.get("symbol", "").upper(),
                name=row.get("name", row["id"]),
                image=row.get("image"),
                current_price=row.get("current_price") or 0.0,
                market_cap=row.get("market_cap") or 0.0,
                market_cap_rank=row.get("market_cap_rank"),
                total_volume=row.get("total_volume") or 0.0,
                price_change_percentage_24h=row.get("price_change_percentage_24h_in_currency",
                                                    row.get("price_change_percentage_24h")),
                price_change_percentage_7d=row.get("price_change_percentage_7d_in_currency"),
                price_change_percentage_30d=row.get("price_change_percentage_30d_in_currency"),
            )
            for row in payload
        ]
    except (KeyError, TypeError, AttributeError, ValidationError) as e:
        raise ParseError("coingecko", "unexpected market row shape") from e


def parse_global(payload: Any) -> GlobalMarket:
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise ParseError("coingecko", "missing data object")
    try:
        return GlobalMarket(
            total_market_cap_usd=data.get("total_market_cap", {}).get("usd"),
            total_volume_usd=data.get("total_volume", {}).get("usd"),
            btc_dominance=data.get("market_cap_percentage", {}).get("btc"),
            eth_dominance=data.get("market_cap_percentage", {}).get("eth"),
            market_cap_change_24h=data.get("market_cap_change_percentage_24h_usd"),
            active_cryptocurrencies=data.get("active_cryptocurrencies"),
        )
    except (AttributeError, ValidationError) as e:
        raise ParseError("coingecko", "unexpected global shape") from e


class CoinGeckoClient:
    """Queued, cached CoinGecko access."""

    SOURCE = "coingecko"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def _endpoint(self) -> tuple[str, dict]:
        """Base URL and headers, switching to the Pro API when a key is available."""
        settings = self.registry.settings
        api_key = await self.registry.credentials.get_api_key_with_name(self.SOURCE)
        self.source.set_premium(api_key is not None)
        if api_key is None:
            return settings.coingecko_base_url, {}
        return settings.coingecko_pro_base_url, {"x-cg-pro-api-key": api_key.key}

    async def _get(self, path: str) -> Any:
        base_url, headers = await self._endpoint()
        return await get_json(
            self.registry.http,
            self.SOURCE,
            f"{base_url}{path}",
            headers=headers,
            timeout=self.source.policy.timeout,
        )

    async def fetch_coingecko(self, path: str) -> Any | None:
        """Raw JSON for ``path`` (with query string), or None when unavailable."""
        key = normalize_request_key(path)
        return await self.source.fetch(key, lambda: self._get(path), empty=lambda: None)

    async def get_shared_markets(self) -> list[CoinMarket]:
        """Top-50 coins by market cap (cached 90s, one request for all callers)."""
        key = "markets:" + normalize_request_key(MARKETS_PATH)

        async def produce() -> list[CoinMarket]:
            return parse_markets(await self._get(MARKETS_PATH))

        return await self.source.fetch(key, produce, empty=list)

    async def get_global(self) -> GlobalMarket | None:
        """Global market stats (cached 90s)."""
        key = "global:" + normalize_request_key(GLOBAL_PATH)

        async def produce() -> GlobalMarket:
            return parse_global(await self._get(GLOBAL_PATH))

        return await self.source.fetch(key, produce, empty=lambda: None)

    async def get_top_movers(self, limit: int = 5) -> dict[str, list[CoinMarket]]:
        """Biggest 24h gainers and losers from the shared snapshot."""
        markets = [m for m in await self.get_shared_markets() if m.price_change_percentage_24h is not None]
        ranked = sorted(markets, key=lambda m: m.price_change_percentage_24h, reverse=True)
        return {
            "gainers": ranked[:limit],
            "losers": list(reversed(ranked[-limit:])) if ranked else [],
        }


# Singleton instance
_client: CoinGeckoClient | None = None


def get_coingecko_client() -> CoinGeckoClient:
    """Get or create CoinGecko client instance."""
    global _client
    if _client is None:
        _client = CoinGeckoClient(get_registry())
    return _client
