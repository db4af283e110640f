"""Supply chain and logistics endpoints."""
from fastapi import APIRouter, Depends

from commandcenter.integrations.gdelt import GdeltClient, get_gdelt_client

router = APIRouter(prefix="/logistics", tags=["logistics"])

# Static reference data; status is editorial, not live
CHOKEPOINTS = [
    {"name": "Suez Canal", "lat": 30.58, "lng": 32.27, "status": "disrupted",
     "description": "Houthi attacks disrupting Red Sea shipping; rerouting via Cape of Good Hope",
     "daily_traffic": "~50 vessels/day", "percent_global_trade": 12},
    {"name": "Strait of Hormuz", "lat": 26.57, "lng": 56.25, "status": "normal",
     "description": "Critical oil transit point; ~21M bbl/day",
     "daily_traffic": "~80 vessels/day", "percent_global_trade": 21},
    {"name": "Strait of Malacca", "lat": 2.5, "lng": 101.5, "status": "normal",
     "description": "Key Asia-Europe route",
     "daily_traffic": "~200 vessels/day", "percent_global_trade": 25},
    {"name": "Panama Canal", "lat": 9.08, "lng": -79.68, "status": "disrupted",
     "description": "Drought reducing daily transits; longer wait times",
     "daily_traffic": "~35 vessels/day", "percent_global_trade": 5},
    {"name": "Bab el-Mandeb", "lat": 12.58, "lng": 43.33, "status": "critical",
     "description": "Missile and drone attacks; many vessels rerouting",
     "daily_traffic": "~30 vessels/day", "percent_global_trade": 9},
    {"name": "Taiwan Strait", "lat": 24.0, "lng": 119.5, "status": "normal",
     "description": "Semiconductor supply route; geopolitical tensions",
     "daily_traffic": "~240 vessels/day", "percent_global_trade": 8},
    {"name": "Strait of Gibraltar", "lat": 35.96, "lng": -5.35, "status": "normal",
     "description": "Mediterranean-Atlantic gateway",
     "daily_traffic": "~300 vessels/day", "percent_global_trade": 6},
    {"name": "Cape of Good Hope", "lat": -34.35, "lng": 18.47, "status": "normal",
     "description": "Alternative to Suez; increased traffic due to Red Sea diversions",
     "daily_traffic": "~100 vessels/day", "percent_global_trade": 4},
]


@router.get("/news")
async def get_supply_chain_news(client: GdeltClient = Depends(get_gdelt_client)):
    """Supply chain headlines from the last 7 days."""
    articles = await client.fetch_supply_chain_news()
    return {"articles": articles, "count": len(articles)}


@router.get("/chokepoints")
async def get_chokepoints():
    """Maritime chokepoints and their disruption status."""
    disrupted = [c for c in CHOKEPOINTS if c["status"] != "normal"]
    return {
        "chokepoints": CHOKEPOINTS,
        "disrupted": len(disrupted),
        "total_trade_share": sum(c["percent_global_trade"] for c in CHOKEPOINTS),
    }
