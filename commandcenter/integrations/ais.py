"""Digitraffic AIS vessel positions (Baltic / Nordic coverage).

Positions come from ``/locations`` (GeoJSON) and are joined by MMSI with
vessel metadata from ``/vessels``, which changes slowly and is cached
longer.
"""
import asyncio
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

METADATA_TTL = 600.0

# AIS ship type codes
SHIP_TYPE_NAMES: dict[int, str] = {
    30: "Fishing",
    31: "Tug",
    32: "Tug",
    33: "Dredger",
    34: "Diving Ops",
    35: "Military Ops",
    36: "Sailing",
    37: "Pleasure Craft",
    50: "Pilot",
    51: "SAR",
    52: "Tug",
    53: "Port Tender",
    54: "Anti-Pollution",
    55: "Law Enforcement",
    58: "Medical",
}
SHIP_TYPE_RANGES: list[tuple[range, str]] = [
    (range(40, 50), "High Speed Craft"),
    (range(60, 70), "Passenger"),
    (range(70, 80), "Cargo"),
    (range(80, 90), "Tanker"),
]
MILITARY_SHIP_TYPES = {35, 50, 51, 52, 53, 54, 55}
MILITARY_NAME_PATTERN = re.compile(r"navy|coast guard|patrol|military|warship", re.IGNORECASE)

# Maritime Identification Digits (first three MMSI digits) -> flag
MID_FLAGS: dict[str, str] = {
    "209": "Cyprus", "210": "Cyprus", "212": "Cyprus",
    "211": "Germany", "218": "Germany",
    "215": "Malta", "229": "Malta", "248": "Malta", "249": "Malta", "256": "Malta",
    "219": "Denmark", "220": "Denmark",
    "224": "Spain", "225": "Spain",
    "226": "France", "227": "France", "228": "France",
    "230": "Finland",
    "232": "United Kingdom", "233": "United Kingdom", "234": "United Kingdom", "235": "United Kingdom",
    "237": "Greece", "239": "Greece", "240": "Greece", "241": "Greece",
    "244": "Netherlands", "245": "Netherlands", "246": "Netherlands",
    "247": "Italy",
    "257": "Norway", "258": "Norway", "259": "Norway",
    "261": "Poland",
    "265": "Sweden", "266": "Sweden",
    "273": "Russia",
    "275": "Latvia",
    "276": "Estonia",
    "277": "Lithuania",
    "304": "Antigua & Barbuda", "305": "Antigua & Barbuda",
    "338": "United States", "366": "United States", "367": "United States",
    "368": "United States", "369": "United States",
    "351": "Panama", "352": "Panama", "353": "Panama", "354": "Panama",
    "355": "Panama", "356": "Panama", "357": "Panama",
    "370": "Panama", "371": "Panama", "372": "Panama", "373": "Panama",
    "412": "China", "413": "China", "414": "China",
    "477": "Hong Kong",
    "538": "Marshall Islands",
    "563": "Singapore", "564": "Singapore", "565": "Singapore", "566": "Singapore",
    "636": "Liberia", "637": "Liberia",
}


def ship_type_name(code: int) -> str:
    if code in SHIP_TYPE_NAMES:
        return SHIP_TYPE_NAMES[code]
    for codes, name in SHIP_TYPE_RANGES:
        if code in codes:
            return name
    return "Other" if code else "Unknown"


def flag_for_mmsi(mmsi: int) -> str:
    return MID_FLAGS.get(str(mmsi)[:3], "Unknown")


class Vessel(BaseModel):
    mmsi: int
    name: str = ""
    ship_type: int = 0
    ship_type_name: str = "Unknown"
    flag: str = "Unknown"
    latitude: float
    longitude: float
    sog: float = 0.0          # speed over ground, knots
    cog: float = 0.0          # course over ground, degrees
    heading: int | None = None
    nav_status: int | None = None
    destination: str = ""
    timestamp: int = 0        # epoch millis of the position report

    @property
    def is_military(self) -> bool:
        return (
            self.ship_type in MILITARY_SHIP_TYPES
            or bool(MILITARY_NAME_PATTERN.search(self.name))
        )


def parse_metadata(payload: Any) -> dict[int, dict]:
    """Vessel metadata list keyed by MMSI."""
    if not isinstance(payload, list):
        raise ParseError("ais", "expected a vessel metadata list")
    return {
        row["mmsi"]: row
        for row in payload
        if isinstance(row, dict) and isinstance(row.get("mmsi"), int)
    }


def parse_locations(payload: Any, metadata: dict[int, dict]) -> list[Vessel]:
    """Join GeoJSON position features with metadata."""
    features = payload.get("features") if isinstance(payload, dict) else None
    if not isinstance(features, list):
        raise ParseError("ais", "expected a GeoJSON FeatureCollection")

    vessels = []
    for feature in features:
        try:
            props = feature.get("properties") or {}
            mmsi = int(feature.get("mmsi") or props["mmsi"])
            lon, lat = feature["geometry"]["coordinates"][:2]
        except (AttributeError, KeyError, TypeError, ValueError):
            continue

        meta = metadata.get(mmsi, {})
        heading = props.get("heading")
        try:
            code = int(meta.get("shipType") or 0)
            vessels.append(Vessel(
                mmsi=mmsi,
                name=str(meta.get("name") or "").strip(),
                ship_type=code,
                ship_type_name=ship_type_name(code),
                flag=flag_for_mmsi(mmsi),
                latitude=lat,
                longitude=lon,
                sog=props.get("sog") or 0.0,
                cog=props.get("cog") or 0.0,
                heading=int(heading) if isinstance(heading, (int, float)) and 0 <= heading <= 360 else None,
                nav_status=props.get("navStat"),
                destination=str(meta.get("destination") or "").strip(),
                timestamp=props.get("timestampExternal") or 0,
            ))
        except (TypeError, ValueError, ValidationError):
            # Position without usable coordinates or fields
            continue
    return vessels


class AisClient:
    SOURCE = "ais"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    @property
    def _headers(self) -> dict[str, str]:
        # Digitraffic asks clients to identify themselves
        return {"Digitraffic-User": self.registry.settings.app_name}

    async def _metadata(self) -> dict[int, dict]:
        async def produce() -> dict[int, dict]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.digitraffic_base_url}/vessels",
                headers=self._headers,
                timeout=self.source.policy.timeout,
            )
            return parse_metadata(payload)

        return await self.source.fetch("vessels", produce, empty=dict, ttl=METADATA_TTL)

    async def fetch_vessels(self) -> list[Vessel]:
        """Latest vessel positions with names and types (cached 60s)."""
        async def produce() -> list[Vessel]:
            payload, metadata = await asyncio.gather(
                get_json(
                    self.registry.http,
                    self.SOURCE,
                    f"{self.registry.settings.digitraffic_base_url}/locations",
                    headers=self._headers,
                    timeout=self.source.policy.timeout,
                ),
                self._metadata(),
            )
            return parse_locations(payload, metadata)

        return await self.source.fetch("locations", produce, empty=list)

    async def fetch_military_vessels(self) -> list[Vessel]:
        return [v for v in await self.fetch_vessels() if v.is_military]


# Singleton instance
_client: AisClient | None = None


def get_ais_client() -> AisClient:
    global _client
    if _client is None:
        _client = AisClient(get_registry())
    return _client
