"""Tests for the CoinGecko adapter."""
import asyncio

import httpx
import pytest

from commandcenter.core.errors import ParseError
from commandcenter.core.pipeline_status import PipelineState
from commandcenter.integrations.coingecko import CoinGeckoClient, parse_global, parse_markets
from commandcenter.services.credentials import ApiKey

from conftest import MockUpstream

MARKETS = [
    {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 65000,
     "market_cap": 1.2e12, "market_cap_rank": 1, "total_volume": 3e10,
     "price_change_percentage_24h_in_currency": 3.5},
    {"id": "ethereum", "symbol": "eth", "name": "Ethereum", "current_price": 3200,
     "market_cap": 3.8e11, "market_cap_rank": 2, "total_volume": 1.5e10,
     "price_change_percentage_24h_in_currency": -1.2},
    {"id": "solana", "symbol": "sol", "name": "Solana", "current_price": 150,
     "market_cap": 7e10, "market_cap_rank": 5, "total_volume": 3e9,
     "price_change_percentage_24h_in_currency": 8.0},
]


def gecko(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/coins/markets"):
        return httpx.Response(200, json=MARKETS)
    if request.url.path.endswith("/global"):
        return httpx.Response(200, json={"data": {
            "total_market_cap": {"usd": 2.4e12},
            "market_cap_percentage": {"btc": 52.1, "eth": 16.8},
        }})
    return httpx.Response(200, json={"bitcoin": {"usd": 65000}})


class TestParsers:
    def test_markets(self) -> None:
        markets = parse_markets(MARKETS)

        assert markets[0].symbol == "BTC"
        assert markets[1].price_change_percentage_24h == -1.2

    def test_empty_market_list_is_parse_error(self) -> None:
        with pytest.raises(ParseError):
            parse_markets([])

    def test_global(self) -> None:
        market = parse_global({"data": {"market_cap_percentage": {"btc": 50.0}}})

        assert market.btc_dominance == 50.0
        assert market.total_market_cap_usd is None


class TestCoinGeckoClient:
    """Test shared snapshots and key handling."""

    @pytest.mark.asyncio
    async def test_shared_markets_single_request(self, make_registry) -> None:
        """Test concurrent widgets share one markets request."""
        upstream = MockUpstream(gecko)
        client = CoinGeckoClient(make_registry(upstream))

        results = await asyncio.gather(*(client.get_shared_markets() for _ in range(5)))

        assert upstream.count == 1
        assert all(r is results[0] for r in results)
        assert len(results[0]) == 3

    @pytest.mark.asyncio
    async def test_reordered_path_hits_cache(self, make_registry) -> None:
        upstream = MockUpstream(gecko)
        client = CoinGeckoClient(make_registry(upstream))

        first = await client.fetch_coingecko("/api/v3/simple/price?ids=bitcoin&vs_currencies=usd")
        second = await client.fetch_coingecko("/api/v3/simple/price?vs_currencies=usd&ids=bitcoin")

        assert upstream.count == 1
        assert second is first

    @pytest.mark.asyncio
    async def test_pro_key_switches_endpoint(self, make_registry) -> None:
        upstream = MockUpstream(gecko)
        registry = make_registry(upstream, credentials={"coingecko": ApiKey("coingecko", "cg-secret")})
        client = CoinGeckoClient(registry)

        await client.get_global()

        request = upstream.requests[0]
        assert request.url.host == "pro-api.coingecko.com"
        assert request.headers["x-cg-pro-api-key"] == "cg-secret"
        assert registry.status.get("coingecko").using_premium_key is True

    @pytest.mark.asyncio
    async def test_html_error_page_backs_off(self, make_registry, clock) -> None:
        upstream = MockUpstream(lambda r: httpx.Response(200, text="<html>Throttled</html>"))
        registry = make_registry(upstream)
        client = CoinGeckoClient(registry)

        assert await client.get_shared_markets() == []
        clock.advance(10)
        assert await client.get_shared_markets() == []

        assert upstream.count == 1
        assert registry.status.get("coingecko").state == PipelineState.ERROR

    @pytest.mark.asyncio
    async def test_top_movers(self, make_registry) -> None:
        client = CoinGeckoClient(make_registry(MockUpstream(gecko)))

        movers = await client.get_top_movers(limit=1)

        assert [m.id for m in movers["gainers"]] == ["solana"]
        assert [m.id for m in movers["losers"]] == ["ethereum"]
