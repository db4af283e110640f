"""Crypto market endpoints (CoinGecko, Fear & Greed)."""
from fastapi import APIRouter, Depends, Query

from commandcenter.integrations.coingecko import CoinGeckoClient, get_coingecko_client
from commandcenter.integrations.fear_greed import FearGreedClient, get_fear_greed_client

router = APIRouter(prefix="/crypto", tags=["crypto"])


@router.get("/markets")
async def get_markets(client: CoinGeckoClient = Depends(get_coingecko_client)):
    """Top 50 coins by market cap."""
    markets = await client.get_shared_markets()
    return {"markets": markets, "count": len(markets)}


@router.get("/global")
async def get_global(client: CoinGeckoClient = Depends(get_coingecko_client)):
    """Total market cap, volume and dominance."""
    return {"global": await client.get_global()}


@router.get("/movers")
async def get_movers(
    limit: int = Query(default=5, ge=1, le=25),
    client: CoinGeckoClient = Depends(get_coingecko_client),
):
    """Biggest 24h gainers and losers among the top 50."""
    return await client.get_top_movers(limit=limit)


@router.get("/fear-greed")
async def get_fear_greed(
    days: int = Query(default=1, ge=1, le=30),
    client: FearGreedClient = Depends(get_fear_greed_client),
):
    """Crypto Fear & Greed index, newest first."""
    readings = await client.get_history(limit=days)
    return {
        "current": readings[0] if readings else None,
        "history": readings,
    }
