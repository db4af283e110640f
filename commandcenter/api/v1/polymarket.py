"""Polymarket API endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from commandcenter.integrations.polymarket import PolymarketClient, get_polymarket_client

router = APIRouter(prefix="/polymarket", tags=["polymarket"])


@router.get("/events")
async def get_events(
    limit: int = Query(default=20, ge=1, le=100),
    category: Optional[str] = Query(default=None, description="crypto, politics, sports, tech, other"),
    client: PolymarketClient = Depends(get_polymarket_client),
):
    """Newest open Polymarket events.

    Args:
        limit: Max events requested upstream (max 100)
        category: Keyword category filter applied after caching
    """
    events = await client.get_events(limit=limit, category=category)

    simplified = [
        {
            "id": event.id,
            "slug": event.slug,
            "title": event.title,
            "category": event.category,
            "yes_price": event.yes_price,
            "no_price": event.no_price,
            "volume": event.volume,
            "liquidity": event.liquidity,
            "end_date": event.end_date,
            "markets_count": len(event.markets),
        }
        for event in events
    ]
    return {"events": simplified, "count": len(simplified)}
