"""Conflict monitoring endpoints: aircraft, vessels, events, hotspots, news."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from commandcenter.integrations.acled import AcledClient, get_acled_client
from commandcenter.integrations.ais import AisClient, get_ais_client
from commandcenter.integrations.firms import FirmsClient, get_firms_client
from commandcenter.integrations.gdelt import GdeltClient, get_gdelt_client
from commandcenter.integrations.opensky import OpenSkyClient, get_opensky_client

router = APIRouter(prefix="/conflict", tags=["conflict"])


@router.get("/aircraft")
async def get_aircraft(client: OpenSkyClient = Depends(get_opensky_client)):
    """Live aircraft with a known position."""
    aircraft = await client.fetch_live_aircraft()
    return {"aircraft": aircraft, "count": len(aircraft)}


@router.get("/aircraft/military")
async def get_military_aircraft(client: OpenSkyClient = Depends(get_opensky_client)):
    """Aircraft whose ICAO24 falls in a known military range."""
    aircraft = await client.fetch_military_aircraft()
    return {"aircraft": aircraft, "count": len(aircraft)}


@router.get("/vessels")
async def get_vessels(
    military_only: bool = False,
    client: AisClient = Depends(get_ais_client),
):
    """AIS vessel positions joined with vessel metadata."""
    if military_only:
        vessels = await client.fetch_military_vessels()
    else:
        vessels = await client.fetch_vessels()
    return {"vessels": vessels, "count": len(vessels)}


@router.get("/events")
async def get_events(
    country: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    client: AcledClient = Depends(get_acled_client),
):
    """Recent conflict events (ACLED, or derived from GDELT headlines)."""
    events = await client.fetch_conflict_events(country=country, event_type=event_type, limit=limit)
    return {"events": events, "count": len(events)}


@router.get("/hotspots")
async def get_hotspots(
    product: str = "VIIRS_SNPP_NRT",
    days: int = 1,
    client: FirmsClient = Depends(get_firms_client),
):
    """Significant thermal hotspots from NASA FIRMS."""
    try:
        hotspots = await client.fetch_hotspots(product=product, day_range=days)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"hotspots": hotspots, "count": len(hotspots)}


@router.get("/news")
async def get_conflict_news(
    query: Optional[str] = Query(default=None, max_length=200),
    client: GdeltClient = Depends(get_gdelt_client),
):
    """Conflict headlines with a heuristic event-type tag."""
    articles = await client.fetch_conflict_news(query)
    return {"articles": articles, "count": len(articles)}
