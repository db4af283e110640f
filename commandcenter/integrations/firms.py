"""NASA FIRMS active fire / thermal hotspot detection.

The area API answers CSV. Columns are located by header name because VIIRS
and MODIS products name the brightness column differently.
"""
import csv
import io
import math

from pydantic import BaseModel

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_text
from commandcenter.core.registry import SourceRegistry, get_registry

DEMO_KEY = "DEMO_KEY"
PRODUCTS = ("VIIRS_SNPP_NRT", "MODIS_NRT")
DAY_RANGES = (1, 2, 10)
MIN_FRP = 10.0  # fire radiative power (MW) kept regardless of confidence


class Hotspot(BaseModel):
    latitude: float
    longitude: float
    brightness: float = 0.0
    confidence: str = "n"
    acq_date: str = ""
    acq_time: str = ""
    satellite: str = ""
    frp: float = 0.0

    @property
    def is_significant(self) -> bool:
        return self.confidence in ("h", "high") or self.frp > MIN_FRP


def _float(value: str | None, default: float = math.nan) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def parse_hotspots_csv(text: str) -> list[Hotspot]:
    """Parse a FIRMS CSV body, keeping high-confidence or high-FRP rows."""
    rows = list(csv.reader(io.StringIO(text.strip())))
    if len(rows) < 2:
        return []

    header = rows[0]
    if "latitude" not in header or "longitude" not in header:
        raise ParseError("firms", f"unexpected CSV header: {','.join(header)[:80]}")

    def index(*names: str) -> int | None:
        for name in names:
            if name in header:
                return header.index(name)
        return None

    lat_idx = index("latitude")
    lon_idx = index("longitude")
    bright_idx = index("bright_ti4", "brightness")
    conf_idx = index("confidence")
    date_idx = index("acq_date")
    time_idx = index("acq_time")
    sat_idx = index("satellite")
    frp_idx = index("frp")

    def col(cols: list[str], idx: int | None) -> str | None:
        if idx is None or idx >= len(cols):
            return None
        return cols[idx]

    hotspots = []
    for cols in rows[1:]:
        lat = _float(col(cols, lat_idx))
        lon = _float(col(cols, lon_idx))
        if math.isnan(lat) or math.isnan(lon):
            continue
        hotspot = Hotspot(
            latitude=lat,
            longitude=lon,
            brightness=_float(col(cols, bright_idx), 0.0),
            confidence=col(cols, conf_idx) or "n",
            acq_date=col(cols, date_idx) or "",
            acq_time=col(cols, time_idx) or "",
            satellite=col(cols, sat_idx) or "",
            frp=_float(col(cols, frp_idx), 0.0),
        )
        if hotspot.is_significant:
            hotspots.append(hotspot)
    return hotspots


class FirmsClient:
    SOURCE = "firms"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def fetch_hotspots(self, product: str = "VIIRS_SNPP_NRT", day_range: int = 1) -> list[Hotspot]:
        """Worldwide significant hotspots for the last ``day_range`` days."""
        if product not in PRODUCTS:
            raise ValueError(f"Unknown FIRMS product: {product}. Available: {list(PRODUCTS)}")
        if day_range not in DAY_RANGES:
            raise ValueError(f"day_range must be one of {DAY_RANGES}")

        async def produce() -> list[Hotspot]:
            api_key = await self.registry.credentials.get_api_key_with_name(self.SOURCE)
            self.source.set_premium(api_key is not None)
            map_key = api_key.key if api_key else DEMO_KEY
            text = await get_text(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.firms_base_url}/{map_key}/{product}/world/{day_range}",
                timeout=self.source.policy.timeout,
            )
            return parse_hotspots_csv(text)

        return await self.source.fetch(f"{product}/{day_range}", produce, empty=list)


# Singleton instance
_client: FirmsClient | None = None


def get_firms_client() -> FirmsClient:
    global _client
    if _client is None:
        _client = FirmsClient(get_registry())
    return _client
