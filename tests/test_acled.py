"""Tests for ACLED conflict events and the GDELT-derived fallback."""
import httpx
import pytest

from commandcenter.core.pipeline_status import PipelineState
from commandcenter.integrations.acled import AcledClient, ConflictEvent, filter_events, parse_events
from commandcenter.services.credentials import ApiKey

from conftest import MockUpstream

ACLED_ROWS = {"success": True, "data": [
    {"event_id_cnty": "UKR1", "event_date": "2024-03-01", "event_type": "Battles",
     "country": "Ukraine", "latitude": "48.5", "longitude": "37.9", "fatalities": "3"},
    {"event_id_cnty": "SDN7", "event_date": "2024-03-01", "event_type": "Violence against civilians",
     "country": "Sudan", "latitude": "15.5", "longitude": "32.5", "fatalities": ""},
    {"event_date": "2024-03-01", "event_type": "Riots"},
]}

GDELT_ARTICLES = {"articles": [
    {"url": "https://news.example/1", "title": "Drone attack on refinery", "domain": "news.example",
     "sourcecountry": "Russia", "seendate": "20240302T120000Z"},
]}


def test_parse_events_skips_rows_without_id() -> None:
    events = parse_events(ACLED_ROWS)

    assert [e.id for e in events] == ["UKR1", "SDN7"]
    assert events[0].latitude == 48.5
    assert events[1].fatalities == 0


def test_filter_events() -> None:
    events = parse_events(ACLED_ROWS)

    assert [e.id for e in filter_events(events, country="sud")] == ["SDN7"]
    assert [e.id for e in filter_events(events, event_type="Battles")] == ["UKR1"]
    assert len(filter_events(events, limit=1)) == 1


class TestAcledClient:
    @pytest.mark.asyncio
    async def test_direct_api_with_credentials(self, make_registry) -> None:
        upstream = MockUpstream(lambda r: httpx.Response(200, json=ACLED_ROWS))
        registry = make_registry(upstream, credentials={"acled": ApiKey("analyst@example.org", "acled-key")})
        client = AcledClient(registry)

        events = await client.fetch_conflict_events(country="Ukraine")

        assert [e.id for e in events] == ["UKR1"]
        params = upstream.requests[0].url.params
        assert params["email"] == "analyst@example.org"
        assert params["key"] == "acled-key"
        assert params["event_date_where"] == ">="
        assert registry.status.get("acled").using_premium_key is True

    @pytest.mark.asyncio
    async def test_derived_from_gdelt_without_credentials(self, make_registry) -> None:
        """Test headline-derived events when no ACLED key is configured."""
        upstream = MockUpstream(lambda r: httpx.Response(200, json=GDELT_ARTICLES))
        registry = make_registry(upstream)
        client = AcledClient(registry)

        events = await client.fetch_conflict_events()

        assert len(events) == 1
        event: ConflictEvent = events[0]
        assert event.derived is True
        assert event.event_type == "Explosions/Remote violence"
        assert event.event_date == "2024-03-02"
        assert event.latitude is None
        assert all("/gdelt" in str(r.url) for r in upstream.requests)

        info = registry.status.get("acled")
        assert info.state == PipelineState.OK
        assert info.message == "derived from GDELT"

    @pytest.mark.asyncio
    async def test_null_fields_do_not_break_direct_fetch(self, make_registry) -> None:
        """Test blank ACLED columns sent as null still yield events."""
        payload = {"success": True, "data": [
            {"event_id_cnty": "SYR3", "event_date": "2024-03-01", "event_type": "Battles",
             "actor1": None, "country": None, "location": 42, "latitude": None, "fatalities": None},
        ]}
        upstream = MockUpstream(lambda r: httpx.Response(200, json=payload))
        registry = make_registry(upstream, credentials={"acled": ApiKey("analyst@example.org", "acled-key")})

        events = await AcledClient(registry).fetch_conflict_events()

        assert [e.id for e in events] == ["SYR3"]
        assert events[0].actor1 == ""
        assert events[0].location == ""
        assert events[0].latitude is None
        assert registry.status.get("acled").state == PipelineState.OK

    @pytest.mark.asyncio
    async def test_derived_mode_reports_gdelt_failure(self, make_registry) -> None:
        """Test the acled pipeline mirrors GDELT when nothing could be derived."""
        upstream = MockUpstream(lambda r: httpx.Response(200, text="Your query was too short."))
        registry = make_registry(upstream)

        events = await AcledClient(registry).fetch_conflict_events()

        assert events == []
        assert registry.status.get("gdelt").state == PipelineState.ERROR
        info = registry.status.get("acled")
        assert info.state == PipelineState.ERROR
        assert info.message == registry.status.get("gdelt").message
