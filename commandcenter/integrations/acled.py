"""ACLED conflict events.

With ACLED credentials the direct API is queried for the last 30 days.
Without them, events are derived from GDELT conflict headlines using the
keyword classifier in ``gdelt`` - coarse, unlocated, best-effort.
"""
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.pipeline_status import PipelineState
from commandcenter.core.registry import SourceRegistry, get_registry
from commandcenter.integrations.gdelt import GdeltArticle, GdeltClient

WINDOW_DAYS = 30
PAGE_LIMIT = 500


class ConflictEvent(BaseModel):
    id: str
    event_date: str
    event_type: str
    sub_event_type: str = ""
    actor1: str = ""
    actor2: str = ""
    country: str = ""
    admin1: str = ""
    location: str = ""
    latitude: float | None = None
    longitude: float | None = None
    fatalities: int = 0
    notes: str = ""
    source: str = ""
    derived: bool = False  # True when inferred from a headline


def _float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _str(row: dict, field: str) -> str:
    # ACLED sends null for blank columns
    value = row.get(field)
    return value if isinstance(value, str) else ""


def parse_events(payload: Any) -> list[ConflictEvent]:
    rows = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(rows, list):
        raise ParseError("acled", "missing data list")
    events = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        event_id = row.get("data_id") or row.get("event_id_cnty")
        if not event_id:
            continue
        try:
            events.append(ConflictEvent(
                id=str(event_id),
                event_date=_str(row, "event_date"),
                event_type=_str(row, "event_type"),
                sub_event_type=_str(row, "sub_event_type"),
                actor1=_str(row, "actor1"),
                actor2=_str(row, "actor2"),
                country=_str(row, "country"),
                admin1=_str(row, "admin1"),
                location=_str(row, "location"),
                latitude=_float(row.get("latitude")),
                longitude=_float(row.get("longitude")),
                fatalities=_int(row.get("fatalities")),
                notes=_str(row, "notes"),
                source=_str(row, "source"),
            ))
        except ValidationError:
            continue
    return events


def event_from_article(article: GdeltArticle) -> ConflictEvent:
    """Headline-derived event; ``article.category`` holds the heuristic type."""
    seen = article.date_added[:8]
    try:
        event_date = datetime.strptime(seen, "%Y%m%d").date().isoformat()
    except ValueError:
        event_date = ""
    return ConflictEvent(
        id=f"gdelt-{article.id}",
        event_date=event_date,
        event_type=article.category or "Other",
        country=article.source_country,
        notes=article.title,
        source=article.domain,
        derived=True,
    )


def filter_events(
    events: list[ConflictEvent],
    country: str | None = None,
    event_type: str | None = None,
    limit: int = 100,
) -> list[ConflictEvent]:
    if country:
        needle = country.lower()
        events = [e for e in events if needle in e.country.lower()]
    if event_type:
        events = [e for e in events if e.event_type == event_type]
    return events[:limit]


class AcledClient:
    SOURCE = "acled"

    def __init__(self, registry: SourceRegistry, gdelt: GdeltClient | None = None):
        self.registry = registry
        self.source = registry.source(self.SOURCE)
        self.gdelt = gdelt or GdeltClient(registry)

    async def fetch_conflict_events(
        self,
        country: str | None = None,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[ConflictEvent]:
        """Recent conflict events, filtered after caching."""
        credentials = await self.registry.credentials.get_api_key_with_name(self.SOURCE)
        if credentials is None:
            events = await self._derived_events()
        else:
            events = await self._direct_events(credentials.key_name, credentials.key)
        return filter_events(events, country, event_type, limit)

    async def _direct_events(self, email: str, key: str) -> list[ConflictEvent]:
        since = date.today() - timedelta(days=WINDOW_DAYS)
        params = {
            "key": key,
            "email": email,
            "limit": str(PAGE_LIMIT),
            "order": "desc",
            "event_date": since.isoformat(),
            "event_date_where": ">=",
        }

        async def produce() -> list[ConflictEvent]:
            self.source.set_premium(True)
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                self.registry.settings.acled_base_url,
                params=params,
                timeout=self.source.policy.timeout,
            )
            return parse_events(payload)

        return await self.source.fetch("direct", produce, empty=list)

    async def _derived_events(self) -> list[ConflictEvent]:
        articles = await self.gdelt.fetch_conflict_news()
        events = [event_from_article(a) for a in articles]
        if events:
            self.registry.status.set_state(
                self.SOURCE, PipelineState.OK, message="derived from GDELT", using_premium_key=False,
            )
        else:
            # Nothing derived: report whatever GDELT itself is reporting
            upstream = self.registry.status.get(self.gdelt.SOURCE)
            state = upstream.state if upstream.state != PipelineState.IDLE else PipelineState.ERROR
            self.registry.status.set_state(
                self.SOURCE,
                state,
                message=upstream.message or "no GDELT conflict articles",
                using_premium_key=False,
            )
        return events


# Singleton instance
_client: AcledClient | None = None


def get_acled_client() -> AcledClient:
    global _client
    if _client is None:
        _client = AcledClient(get_registry())
    return _client
