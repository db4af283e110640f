"""GDELT article feeds: conflict, cyber and supply-chain news.

Queries go through a GDELT relay service. GDELT occasionally answers 200
with a plain-text error page ("Queries containing..."), which is treated
as a malformed response and puts the source into backoff like a 429.

Headline categories come from keyword matching. They are a best-effort
heuristic, not something GDELT asserts about the article.
"""
import hashlib
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

CONFLICT_QUERY = "conflict war military"
CYBER_QUERY = '(ransomware OR cyberattack OR "data breach" OR "zero-day" OR ddos OR "state-sponsored hackers")'
SUPPLY_CHAIN_QUERY = (
    '"supply chain" OR "shipping disruption" OR "semiconductor shortage" OR "port congestion" '
    'OR "freight rates" OR "trade war" OR "food security" OR "energy crisis" OR "rare earth" '
    'OR "chip shortage"'
)

# Ordered: first match wins. Labels follow ACLED event types.
CONFLICT_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("Explosions/Remote violence", re.compile(
        r"air ?strike|missile|drone|shelling|bomb|explosion|rocket|artillery")),
    ("Battles", re.compile(r"clash|battle|fighting|offensive|troops|combat|firefight")),
    ("Violence against civilians", re.compile(r"civilians? killed|massacre|execution|hostage|abduct")),
    ("Riots", re.compile(r"riot|unrest|looting")),
    ("Protests", re.compile(r"protest|demonstrat|rally")),
    ("Strategic developments", re.compile(r"ceasefire|deploy|mobili[sz]|sanction|treaty|peace talks")),
]

CYBER_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("ransomware", re.compile(r"ransomware|extortion|lockbit")),
    ("apt", re.compile(r"\bapt\s?\d*\b|state-sponsored|nation-state|espionage|lazarus|fancy bear")),
    ("ddos", re.compile(r"ddos|denial.of.service|botnet")),
    ("breach", re.compile(r"breach|leak|exposed|stolen data|hacked")),
    ("vulnerability", re.compile(r"vulnerab|zero-day|cve-\d|exploit|patch")),
]

SUPPLY_CHAIN_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("shipping", re.compile(r"ship|port|freight|container|maritime|canal|vessel")),
    ("semiconductor", re.compile(r"semiconductor|chip|wafer|fab|tsmc|intel|nvidia")),
    ("energy", re.compile(r"oil|gas|energy|opec|pipeline|refiner|lng|coal")),
    ("food", re.compile(r"food|grain|wheat|rice|famine|fertilizer|crop")),
    ("trade", re.compile(r"tariff|trade war|sanction|embargo|export ban|import")),
]


def classify(title: str, patterns: list[tuple[str, re.Pattern]], default: str) -> str:
    """First keyword category matching the lowercased title."""
    lowered = title.lower()
    for category, pattern in patterns:
        if pattern.search(lowered):
            return category
    return default


def classify_conflict_headline(title: str) -> str:
    return classify(title, CONFLICT_PATTERNS, "Other")


def classify_cyber_headline(title: str) -> str:
    return classify(title, CYBER_PATTERNS, "cyber")


def classify_supply_chain_headline(title: str) -> str:
    return classify(title, SUPPLY_CHAIN_PATTERNS, "logistics")


class GdeltArticle(BaseModel):
    id: str
    title: str
    url: str
    domain: str = ""
    language: str = "English"
    source_country: str = ""
    tone: float = 0.0
    date_added: str = ""  # GDELT seendate, e.g. 20240101T120000Z
    image: str | None = None
    category: str = ""    # heuristic, see module docstring


def _tone(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(str(value).split(",")[0])
    except ValueError:
        return 0.0


def parse_articles(payload: Any) -> list[GdeltArticle]:
    if not isinstance(payload, dict):
        raise ParseError("gdelt", "expected an object")
    raw_articles = payload.get("articles", [])
    if not isinstance(raw_articles, list):
        raise ParseError("gdelt", "articles is not a list")

    articles = []
    for raw in raw_articles:
        if not isinstance(raw, dict):
            continue
        url = raw.get("url") or ""
        try:
            articles.append(GdeltArticle(
                id=hashlib.sha1(url.encode()).hexdigest()[:16] if url else f"gdelt-{len(articles)}",
                title=raw.get("title") or "",
                url=url,
                domain=raw.get("domain") or "",
                language=raw.get("language") or "English",
                source_country=raw.get("sourcecountry") or "",
                tone=_tone(raw.get("tone")),
                date_added=raw.get("seendate") or "",
                image=raw.get("socialimage") or None,
            ))
        except (AttributeError, ValidationError):
            continue
    return articles


class GdeltClient:
    """Article-list queries through the GDELT relay."""

    SOURCE = "gdelt"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def _article_list(self, query: str, max_records: int, timespan: str) -> list[GdeltArticle]:
        params = {
            "query": query,
            "mode": "ArtList",
            "maxrecords": str(max_records),
            "format": "json",
            "timespan": timespan,
            "sort": "DateDesc",
        }

        async def produce() -> list[GdeltArticle]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.gdelt_relay_url}/gdelt",
                params=params,
                timeout=self.source.policy.timeout,
            )
            return parse_articles(payload)

        key = f"{query}|{max_records}|{timespan}"
        return await self.source.fetch(key, produce, empty=list)

    async def fetch_conflict_news(self, query: str | None = None) -> list[GdeltArticle]:
        """Last 24h conflict headlines tagged with a heuristic event type."""
        articles = await self._article_list(query or CONFLICT_QUERY, 30, "24h")
        return [a.model_copy(update={"category": classify_conflict_headline(a.title)}) for a in articles]

    async def fetch_cyber_news(self) -> list[GdeltArticle]:
        articles = await self._article_list(CYBER_QUERY, 30, "48h")
        return [a.model_copy(update={"category": classify_cyber_headline(a.title)}) for a in articles]

    async def fetch_supply_chain_news(self) -> list[GdeltArticle]:
        articles = await self._article_list(SUPPLY_CHAIN_QUERY, 40, "7d")
        return [a.model_copy(update={"category": classify_supply_chain_headline(a.title)}) for a in articles]


# Singleton instance
_client: GdeltClient | None = None


def get_gdelt_client() -> GdeltClient:
    global _client
    if _client is None:
        _client = GdeltClient(get_registry())
    return _client
