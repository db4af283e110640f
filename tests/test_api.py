"""Smoke tests for the HTTP API."""
import httpx
import pytest
from fastapi.testclient import TestClient

from commandcenter.core.registry import get_registry
from commandcenter.integrations.fred import FredClient, get_fred_client
from commandcenter.integrations.yahoo import YahooFinanceClient, get_yahoo_client
from commandcenter.main import app

from conftest import MockUpstream


def upstreams(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "query2.finance.yahoo.com":
        symbols = request.url.params["symbols"].split(",")
        return httpx.Response(200, json={"quoteResponse": {"result": [
            {"symbol": s, "shortName": s, "regularMarketPrice": 100.0 + i} for i, s in enumerate(symbols)
        ]}})
    if host == "api.coingecko.com":
        return httpx.Response(
            200,
            json={"gecko_says": "(V3) To the Moon!"},
            headers={"cache-control": "max-age=30", "x-internal": "1"},
        )
    return httpx.Response(404)


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream(upstreams)


@pytest.fixture
def client(make_registry, upstream):
    registry = make_registry(upstream)
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_yahoo_client] = lambda: YahooFinanceClient(registry)
    app.dependency_overrides[get_fred_client] = lambda: FredClient(registry)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRoot:
    def test_health(self, client) -> None:
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/api/v1/health").json()["service"] == "commandcenter-feeds"

    def test_root(self, client) -> None:
        body = client.get("/").json()

        assert body["name"] == "Command Center"


class TestQuotes:
    def test_quotes(self, client) -> None:
        response = client.get("/api/v1/quotes", params={"symbols": "AAPL, MSFT"})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert {q["symbol"] for q in body["quotes"]} == {"AAPL", "MSFT"}

    def test_unknown_group(self, client) -> None:
        assert client.get("/api/v1/quotes/groups/tulips").status_code == 404

    def test_metals_group_has_ratio(self, client) -> None:
        body = client.get("/api/v1/quotes/groups/metals").json()

        assert body["count"] == 5
        assert "gold_silver_ratio" in body


class TestPipelines:
    def test_lists_known_pipelines(self, client) -> None:
        body = client.get("/api/v1/pipelines").json()

        by_name = {p["name"]: p for p in body["pipelines"]}
        assert by_name["opensky"]["state"] == "idle"
        assert by_name["opensky"]["label"] == "OpenSky Network"

    def test_state_after_fetch(self, client) -> None:
        client.get("/api/v1/quotes", params={"symbols": "AAPL"})

        body = client.get("/api/v1/pipelines/yahoo").json()

        assert body["state"] == "ok"
        assert body["status_text"] == "Public endpoint · rate limited"

    def test_unknown_pipeline(self, client) -> None:
        assert client.get("/api/v1/pipelines/nope").status_code == 404


class TestMisc:
    def test_fred_without_key(self, client) -> None:
        body = client.get("/api/v1/macro/fred").json()

        assert body == {"series": [], "count": 0}

    def test_chokepoints(self, client) -> None:
        body = client.get("/api/v1/logistics/chokepoints").json()

        assert len(body["chokepoints"]) == 8
        assert body["disrupted"] == 3


class TestProxy:
    def test_pass_through(self, client, upstream) -> None:
        response = client.get("/api/coingecko/api/v3/ping", params={"x": "1"})

        assert response.status_code == 200
        assert response.json() == {"gecko_says": "(V3) To the Moon!"}
        assert response.headers["cache-control"] == "max-age=30"
        assert "x-internal" not in response.headers

        forwarded = upstream.requests[-1]
        assert str(forwarded.url) == "https://api.coingecko.com/api/v3/ping?x=1"

    def test_nested_path_rewritten_per_prefix(self, client, upstream) -> None:
        client.get("/api/yahoo/v7/finance/quote", params={"symbols": "AAPL"})

        assert str(upstream.requests[-1].url) == "https://query2.finance.yahoo.com/v7/finance/quote?symbols=AAPL"

    def test_unknown_prefix(self, client) -> None:
        assert client.get("/api/nowhere/thing").status_code == 404
