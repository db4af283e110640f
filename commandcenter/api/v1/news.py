"""Financial news endpoints (RSS)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from commandcenter.integrations.rss import NewsFeedClient, get_news_client

router = APIRouter(prefix="/news", tags=["news"])


@router.get("")
async def get_news(
    category: Optional[str] = Query(default=None, description="crypto, markets, macro or all"),
    limit: int = Query(default=30, ge=1, le=100),
    client: NewsFeedClient = Depends(get_news_client),
):
    """Latest headlines across all feeds, newest first."""
    items = await client.get_news(category)
    return {"items": items[:limit], "count": min(len(items), limit)}
