"""CIRCL vulnerability feed (latest published CVEs).

``/api/last/<n>`` has served two shapes over time: a flat legacy record
(``id``, ``summary``, ``cvss``, ``Published``) and CVE JSON 5.x records
(``cveMetadata`` + ``containers``). Both normalize to CveEntry.
"""
from typing import Any

from pydantic import BaseModel, ValidationError

from commandcenter.core.errors import ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

CVSS_METRIC_KEYS = ("cvssV4_0", "cvssV3_1", "cvssV3_0", "cvssV2_0")


class CveEntry(BaseModel):
    id: str
    summary: str = ""
    cvss: float | None = None
    published: str | None = None
    references: list[str] = []

    @property
    def severity(self) -> str:
        if self.cvss is None:
            return "unknown"
        if self.cvss >= 9:
            return "critical"
        if self.cvss >= 7:
            return "high"
        if self.cvss >= 4:
            return "medium"
        return "low"


def _score(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _parse_legacy(record: dict) -> CveEntry:
    return CveEntry(
        id=record["id"],
        summary=record.get("summary") or "",
        cvss=_score(record.get("cvss3") or record.get("cvss")),
        published=record.get("Published") or record.get("published"),
        references=[r for r in record.get("references") or [] if isinstance(r, str)],
    )


def _parse_v5(record: dict) -> CveEntry:
    meta = record["cveMetadata"]
    cna = (record.get("containers") or {}).get("cna") or {}

    summary = ""
    for description in cna.get("descriptions") or []:
        if description.get("lang", "en").startswith("en"):
            summary = description.get("value", "")
            break

    cvss = None
    for metric in cna.get("metrics") or []:
        for key in CVSS_METRIC_KEYS:
            if key in metric:
                cvss = _score(metric[key].get("baseScore"))
                break
        if cvss is not None:
            break

    return CveEntry(
        id=meta["cveId"],
        summary=summary,
        cvss=cvss,
        published=meta.get("datePublished"),
        references=[r["url"] for r in cna.get("references") or [] if isinstance(r, dict) and r.get("url")],
    )


def parse_cves(payload: Any) -> list[CveEntry]:
    if not isinstance(payload, list):
        raise ParseError("cve", "expected a list of records")
    entries = []
    for record in payload:
        if not isinstance(record, dict):
            continue
        try:
            if "cveMetadata" in record:
                entries.append(_parse_v5(record))
            elif "id" in record:
                entries.append(_parse_legacy(record))
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ParseError("cve", "unexpected record shape") from e
    return entries


class CveClient:
    SOURCE = "cve"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)

    async def fetch_latest_cves(self, limit: int = 20) -> list[CveEntry]:
        async def produce() -> list[CveEntry]:
            payload = await get_json(
                self.registry.http,
                self.SOURCE,
                f"{self.registry.settings.circl_base_url}/last/{limit}",
                timeout=self.source.policy.timeout,
            )
            return parse_cves(payload)

        return await self.source.fetch(f"/last/{limit}", produce, empty=list)


# Singleton instance
_client: CveClient | None = None


def get_cve_client() -> CveClient:
    global _client
    if _client is None:
        _client = CveClient(get_registry())
    return _client
