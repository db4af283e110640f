"""Cyber threat endpoints."""
from fastapi import APIRouter, Depends, Query

from commandcenter.integrations.cve import CveClient, get_cve_client
from commandcenter.integrations.gdelt import GdeltClient, get_gdelt_client

router = APIRouter(prefix="/cyber", tags=["cyber"])


@router.get("/news")
async def get_cyber_news(client: GdeltClient = Depends(get_gdelt_client)):
    """Cyber incident headlines from the last 48h."""
    articles = await client.fetch_cyber_news()
    return {"articles": articles, "count": len(articles)}


@router.get("/cves")
async def get_cves(
    limit: int = Query(default=20, ge=1, le=100),
    client: CveClient = Depends(get_cve_client),
):
    """Latest published CVEs with a CVSS severity bucket."""
    entries = await client.fetch_latest_cves(limit=limit)
    return {
        "cves": [{**entry.model_dump(), "severity": entry.severity} for entry in entries],
        "count": len(entries),
    }
