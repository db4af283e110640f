"""Financial news headlines via rss2json."""
import asyncio
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

RSS_FEEDS = [
    {"url": "https://www.coindesk.com/arc/outboundfeeds/rss/", "source": "CoinDesk", "category": "crypto"},
    {"url": "https://cointelegraph.com/rss", "source": "CoinTelegraph", "category": "crypto"},
    {"url": "https://feeds.marketwatch.com/marketwatch/topstories/", "source": "MarketWatch", "category": "markets"},
    {"url": "https://feeds.bbci.co.uk/news/business/rss.xml", "source": "BBC Business", "category": "macro"},
    {"url": "https://rss.nytimes.com/services/xml/rss/nyt/Business.xml", "source": "NYT Business", "category": "macro"},
    {
        "url": "https://search.cnbc.com/rs/search/combinedcms/view.xml?partnerId=wrss01&id=100003114",
        "source": "CNBC",
        "category": "markets",
    },
]

ITEMS_PER_FEED = 5


class NewsItem(BaseModel):
    title: str
    link: str
    pub_date: datetime | None = None
    source: str
    category: str


def _parse_date(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace(" ", "T"))
    except ValueError:
        return None


def parse_feed(payload: Any, feed: dict) -> list[NewsItem]:
    if not isinstance(payload, dict) or payload.get("status") != "ok":
        raise ParseError("rss", f"feed {feed['source']} not ok")
    items = payload.get("items")
    if not isinstance(items, list):
        raise ParseError("rss", f"feed {feed['source']} has no items")
    news = []
    for item in items[:ITEMS_PER_FEED]:
        if not isinstance(item, dict):
            continue
        try:
            news.append(NewsItem(
                title=item.get("title") or "",
                link=item.get("link") or "",
                pub_date=_parse_date(item.get("pubDate")),
                source=feed["source"],
                category=feed["category"],
            ))
        except ValidationError:
            continue
    return news


class NewsFeedClient:
    """Parallel fetch over RSS_FEEDS, one cache entry per feed."""

    SOURCE = "rss"

    def __init__(self, registry: SourceRegistry, feeds: list[dict] | None = None):
        self.registry = registry
        self.source = registry.source(self.SOURCE)
        self.feeds = feeds or RSS_FEEDS

    async def _fetch_feed(self, feed: dict) -> list[NewsItem]:
        async def produce() -> list[NewsItem]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.rss_base_url}/v1/api.json",
                params={"rss_url": feed["url"]},
                timeout=self.source.policy.timeout,
            )
            return parse_feed(payload, feed)

        return await self.source.fetch(feed["url"], produce, empty=list)

    async def get_news(self, category: str | None = None) -> list[NewsItem]:
        """Latest headlines across all feeds, newest first."""
        results = await asyncio.gather(*(self._fetch_feed(feed) for feed in self.feeds))
        items = [item for feed_items in results for item in feed_items]
        if category and category != "all":
            items = [i for i in items if i.category == category]
        items.sort(key=lambda i: i.pub_date.timestamp() if i.pub_date else 0.0, reverse=True)
        return items


# Singleton instance
_client: NewsFeedClient | None = None


def get_news_client() -> NewsFeedClient:
    global _client
    if _client is None:
        _client = NewsFeedClient(get_registry())
    return _client
