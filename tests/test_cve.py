"""Tests for the CIRCL CVE adapter."""
import httpx
import pytest

from commandcenter.core.errors import ParseError
from commandcenter.core.pipeline_status import PipelineState
from commandcenter.integrations.cve import CveClient, CveEntry, parse_cves

from conftest import MockUpstream

LEGACY = {
    "id": "CVE-2023-0001",
    "summary": "Buffer overflow in example daemon.",
    "cvss": 9.8,
    "Published": "2023-01-02T10:00:00",
    "references": ["https://example.org/advisory"],
}

V5 = {
    "dataType": "CVE_RECORD",
    "cveMetadata": {"cveId": "CVE-2024-1234", "datePublished": "2024-03-01T00:00:00Z"},
    "containers": {"cna": {
        "descriptions": [{"lang": "en", "value": "SQL injection in example CMS."}],
        "metrics": [{"cvssV3_1": {"baseScore": 7.5, "baseSeverity": "HIGH"}}],
        "references": [{"url": "https://example.org/cve-2024-1234"}],
    }},
}


class TestParseCves:
    def test_both_shapes(self) -> None:
        legacy, v5 = parse_cves([LEGACY, V5])

        assert legacy.id == "CVE-2023-0001"
        assert legacy.cvss == 9.8
        assert legacy.severity == "critical"

        assert v5.id == "CVE-2024-1234"
        assert v5.summary == "SQL injection in example CMS."
        assert v5.cvss == 7.5
        assert v5.severity == "high"
        assert v5.references == ["https://example.org/cve-2024-1234"]

    def test_unscored_entry(self) -> None:
        entry = parse_cves([{"id": "CVE-2024-9999"}])[0]

        assert entry.cvss is None
        assert entry.severity == "unknown"

    def test_non_list_is_parse_error(self) -> None:
        with pytest.raises(ParseError):
            parse_cves({"error": "rate limited"})

    def test_wrongly_typed_record_is_parse_error(self) -> None:
        with pytest.raises(ParseError):
            parse_cves([{"id": 20240001, "summary": "numeric id"}])

    @pytest.mark.parametrize("score,expected", [(3.9, "low"), (4.0, "medium"), (6.9, "medium"), (9.0, "critical")])
    def test_severity_buckets(self, score, expected) -> None:
        assert CveEntry(id="CVE-X", cvss=score).severity == expected


@pytest.mark.asyncio
async def test_fetch_latest_cves(make_registry) -> None:
    upstream = MockUpstream(lambda r: httpx.Response(200, json=[LEGACY, V5]))
    client = CveClient(make_registry(upstream))

    entries = await client.fetch_latest_cves(limit=2)
    again = await client.fetch_latest_cves(limit=2)

    assert [e.id for e in entries] == ["CVE-2023-0001", "CVE-2024-1234"]
    assert again is entries
    assert upstream.count == 1
    assert upstream.requests[0].url.path == "/api/last/2"


@pytest.mark.asyncio
async def test_malformed_feed_backs_off(make_registry) -> None:
    """Test a record the model rejects empties the result and starts a cooldown."""
    upstream = MockUpstream(lambda r: httpx.Response(200, json=[{"id": 20240001}]))
    registry = make_registry(upstream)
    client = CveClient(registry)

    assert await client.fetch_latest_cves(limit=1) == []
    assert await client.fetch_latest_cves(limit=1) == []

    assert upstream.count == 1
    assert registry.status.get("cve").state == PipelineState.ERROR
