"""FRED (Federal Reserve Economic Data) macro series.

Requires an API key (credential "fred"). Without one every call returns an
empty list and the pipeline reports the missing key.
"""
import asyncio
from datetime import date
from typing import Any

from pydantic import BaseModel

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.pipeline_status import PipelineState
from commandcenter.core.registry import SourceRegistry, get_registry

# Key macro series we track
FRED_SERIES = [
    {"id": "DFF", "label": "Fed Funds Rate", "unit": "%"},
    {"id": "CPIAUCSL", "label": "CPI (All Urban)", "unit": "Index"},
    {"id": "UNRATE", "label": "Unemployment Rate", "unit": "%"},
    {"id": "T10Y2Y", "label": "10Y-2Y Spread", "unit": "%"},
    {"id": "GDP", "label": "Real GDP", "unit": "B$"},
    {"id": "M2SL", "label": "M2 Money Supply", "unit": "B$"},
    {"id": "DTWEXBGS", "label": "Trade-Weighted USD", "unit": "Index"},
    {"id": "VIXCLS", "label": "VIX", "unit": "Index"},
]
DASHBOARD_SERIES = [s["id"] for s in FRED_SERIES[:4]]
HISTORY_MONTHS = 12


class FredObservation(BaseModel):
    date: str  # YYYY-MM
    value: float


class FredSeriesData(BaseModel):
    series_id: str
    label: str
    unit: str
    latest_value: float
    previous_value: float
    change: float
    observations: list[FredObservation]


def parse_series(payload: Any, series: dict) -> FredSeriesData | None:
    """Monthly-deduplicated series; None when FRED has no usable values."""
    raw = payload.get("observations") if isinstance(payload, dict) else None
    if not isinstance(raw, list):
        raise ParseError("fred", f"missing observations for {series['id']}")

    by_month: dict[str, FredObservation] = {}
    for obs in raw:
        value = obs.get("value") if isinstance(obs, dict) else None
        if value in (None, "."):
            continue
        try:
            by_month[obs["date"][:7]] = FredObservation(date=obs["date"][:7], value=float(value))
        except (KeyError, TypeError, ValueError):
            continue

    if not by_month:
        return None
    deduped = list(by_month.values())
    latest = deduped[-1]
    previous = deduped[-2] if len(deduped) > 1 else latest
    return FredSeriesData(
        series_id=series["id"],
        label=series["label"],
        unit=series["unit"],
        latest_value=latest.value,
        previous_value=previous.value,
        change=latest.value - previous.value,
        observations=deduped[-HISTORY_MONTHS:],
    )


class FredClient:
    SOURCE = "fred"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def has_key(self) -> bool:
        return await self.registry.credentials.get_api_key_with_name(self.SOURCE) is not None

    async def _series(self, series: dict, api_key: str) -> FredSeriesData | None:
        today = date.today()
        start = today.replace(year=today.year - 2, day=1)

        async def produce() -> FredSeriesData | None:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.fred_base_url}/series/observations",
                params={
                    "series_id": series["id"],
                    "api_key": api_key,
                    "file_type": "json",
                    "observation_start": start.isoformat(),
                    "sort_order": "asc",
                },
                timeout=self.source.policy.timeout,
            )
            return parse_series(payload, series)

        return await self.source.fetch(series["id"], produce, empty=lambda: None)

    async def fetch_fred_data(self, series_ids: list[str] | None = None) -> list[FredSeriesData]:
        """Tracked series (dashboard subset by default)."""
        api_key = await self.registry.credentials.get_api_key_with_name(self.SOURCE)
        if api_key is None:
            self.registry.status.set_state(
                self.SOURCE, PipelineState.ERROR, message="No FRED API key", using_premium_key=False,
            )
            return []
        self.source.set_premium(True)

        wanted = series_ids or DASHBOARD_SERIES
        unknown = set(wanted) - {s["id"] for s in FRED_SERIES}
        if unknown:
            raise ValueError(f"Unknown FRED series: {sorted(unknown)}")

        targets = [s for s in FRED_SERIES if s["id"] in wanted]
        results = await asyncio.gather(*(self._series(s, api_key.key) for s in targets))
        return [r for r in results if r is not None]

    async def build_fred_context(self) -> str | None:
        """Plain-text summary of all tracked series."""
        data = await self.fetch_fred_data([s["id"] for s in FRED_SERIES])
        if not data:
            return None

        lines = []
        for s in data:
            sign = "+" if s.change >= 0 else ""
            value = (
                f"{s.latest_value / 1000:.1f}T"
                if abs(s.latest_value) > 1000
                else f"{s.latest_value:.2f}"
            )
            lines.append(f"  {s.label}: {value} {s.unit} ({sign}{s.change:.2f} MoM)")
        return "FRED MACRO DATA (LIVE):\n" + "\n".join(lines)


# Singleton instance
_client: FredClient | None = None


def get_fred_client() -> FredClient:
    global _client
    if _client is None:
        _client = FredClient(get_registry())
    return _client
