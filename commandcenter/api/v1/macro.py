"""Macro data endpoints (FRED)."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from commandcenter.integrations.fred import FRED_SERIES, FredClient, get_fred_client

router = APIRouter(prefix="/macro", tags=["macro"])


@router.get("/fred")
async def get_fred_series(
    series: Optional[str] = Query(default=None, description="Comma-separated FRED series ids"),
    client: FredClient = Depends(get_fred_client),
):
    """Tracked FRED series; empty when no API key is configured."""
    series_ids = [s.strip().upper() for s in series.split(",") if s.strip()] if series else None
    try:
        data = await client.fetch_fred_data(series_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"series": data, "count": len(data)}


@router.get("/fred/catalog")
async def get_fred_catalog():
    """Series ids this service knows how to fetch."""
    return {"series": FRED_SERIES}


@router.get("/fred/context")
async def get_fred_context(client: FredClient = Depends(get_fred_client)):
    """Plain-text summary of all tracked series."""
    return {"context": await client.build_fred_context()}
