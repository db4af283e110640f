"""Yahoo Finance quote client.

Uses the v7 quote endpoint - free, no API key needed. Batches multiple
symbols into a single request and caches per symbol, so widgets asking for
overlapping symbol sets share entries.
"""
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from commandcenter.core.cache import normalize_request_key
from commandcenter.core.errors import FetchError, ParseError
from commandcenter.core.http import get_json
from commandcenter.core.registry import SourceRegistry, get_registry

QUOTE_FIELDS = (
    "shortName,regularMarketPrice,regularMarketChange,regularMarketChangePercent,"
    "regularMarketPreviousClose,regularMarketOpen,regularMarketDayHigh,"
    "regularMarketDayLow,regularMarketVolume,currency,marketState,quoteType"
)


class Quote(BaseModel):
    """Normalized quote for an equity, index, future, currency or bond yield."""
    symbol: str
    short_name: str
    regular_market_price: float = 0.0
    regular_market_change: float = 0.0
    regular_market_change_percent: float = 0.0
    regular_market_previous_close: float = 0.0
    regular_market_open: float = 0.0
    regular_market_day_high: float = 0.0
    regular_market_day_low: float = 0.0
    regular_market_volume: float = 0.0
    currency: str = "USD"
    market_state: str = "CLOSED"  # PRE, REGULAR, POST, CLOSED
    quote_type: str = "EQUITY"    # EQUITY, INDEX, CURRENCY, FUTURE, MUTUALFUND


def _num(raw: dict, field: str) -> float:
    value = raw.get(field)
    return float(value) if value is not None else 0.0


def parse_quotes(payload: Any) -> list[Quote]:
    """Parse a ``quoteResponse`` body into Quotes."""
    try:
        results = payload["quoteResponse"]["result"]
    except (KeyError, TypeError) as e:
        raise ParseError("yahoo", "missing quoteResponse.result") from e
    if results is None:
        return []
    if not isinstance(results, list):
        raise ParseError("yahoo", "quoteResponse.result is not a list")

    quotes = []
    for raw in results:
        if not isinstance(raw, dict) or not raw.get("symbol"):
            continue
        try:
            quotes.append(Quote(
                symbol=raw["symbol"],
                short_name=raw.get("shortName") or raw["symbol"],
                regular_market_price=_num(raw, "regularMarketPrice"),
                regular_market_change=_num(raw, "regularMarketChange"),
                regular_market_change_percent=_num(raw, "regularMarketChangePercent"),
                regular_market_previous_close=_num(raw, "regularMarketPreviousClose"),
                regular_market_open=_num(raw, "regularMarketOpen"),
                regular_market_day_high=_num(raw, "regularMarketDayHigh"),
                regular_market_day_low=_num(raw, "regularMarketDayLow"),
                regular_market_volume=_num(raw, "regularMarketVolume"),
                currency=raw.get("currency") or "USD",
                market_state=raw.get("marketState") or "CLOSED",
                quote_type=raw.get("quoteType") or "EQUITY",
            ))
        except (TypeError, ValueError, ValidationError) as e:
            raise ParseError("yahoo", f"bad quote for {raw.get('symbol')}") from e
    return quotes


class YahooFinanceClient:
    """Batching quote client with a per-symbol 60s cache."""

    SOURCE = "yahoo"
    QUOTE_PATH = "/v7/finance/quote"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)
        self.base_url = registry.settings.yahoo_base_url

    @classmethod
    def request_key(cls, symbols: Iterable[str]) -> str:
        """Cache/dedup key for a symbol batch, independent of argument order."""
        joined = ",".join(sorted(set(symbols)))
        return normalize_request_key(f"{cls.QUOTE_PATH}?symbols={joined}&fields={QUOTE_FIELDS}")

    async def fetch_quotes(self, symbols: Iterable[str]) -> dict[str, Quote]:
        """Quotes for ``symbols``: fresh where possible, stale where the upstream is failing.

        Symbols never seen successfully are simply absent from the result.
        """
        wanted = list(dict.fromkeys(s.strip() for s in symbols if s and s.strip()))
        if not wanted:
            return {}

        source = self.source
        missing = [s for s in wanted if not source.cache.is_fresh(s)]
        if missing and source.backoff.should_attempt():
            key = self.request_key(missing)
            try:
                await source.inflight.dedupe(
                    key,
                    lambda: source.call(lambda: self._download(missing), key=key, cached_keys=missing),
                )
            except FetchError:
                # Already logged and recorded by the source; serve stale below
                pass

        return {s: source.cache.stale(s) for s in wanted if s in source.cache}

    async def _download(self, symbols: list[str]) -> list[Quote]:
        payload = await get_json(
            self.registry.http,
            self.SOURCE,
            f"{self.base_url}{self.QUOTE_PATH}",
            params={"symbols": ",".join(sorted(symbols)), "fields": QUOTE_FIELDS},
            timeout=self.source.policy.timeout,
        )
        quotes = parse_quotes(payload)
        for quote in quotes:
            self.source.cache.put(quote.symbol, quote)
        return quotes

    async def fetch_group(self, group: str) -> dict[str, Quote]:
        """Quotes for a named symbol group (see SYMBOL_GROUPS)."""
        if group not in SYMBOL_GROUPS:
            raise ValueError(f"Unknown symbol group: {group}. Available: {list(SYMBOL_GROUPS)}")
        return await self.fetch_quotes(item["symbol"] for item in SYMBOL_GROUPS[group])


# ── Symbol groups ──

INDICES = [
    {"symbol": "^GSPC", "name": "S&P 500", "region": "US"},
    {"symbol": "^DJI", "name": "Dow Jones", "region": "US"},
    {"symbol": "^IXIC", "name": "NASDAQ", "region": "US"},
    {"symbol": "^RUT", "name": "Russell 2000", "region": "US"},
    {"symbol": "^FTSE", "name": "FTSE 100", "region": "GB"},
    {"symbol": "^GDAXI", "name": "DAX", "region": "DE"},
    {"symbol": "^FCHI", "name": "CAC 40", "region": "FR"},
    {"symbol": "^N225", "name": "Nikkei 225", "region": "JP"},
    {"symbol": "000001.SS", "name": "Shanghai", "region": "CN"},
    {"symbol": "^HSI", "name": "Hang Seng", "region": "HK"},
    {"symbol": "^BSESN", "name": "BSE Sensex", "region": "IN"},
]

METALS = [
    {"symbol": "GC=F", "name": "Gold", "unit": "/oz"},
    {"symbol": "SI=F", "name": "Silver", "unit": "/oz"},
    {"symbol": "PL=F", "name": "Platinum", "unit": "/oz"},
    {"symbol": "PA=F", "name": "Palladium", "unit": "/oz"},
    {"symbol": "HG=F", "name": "Copper", "unit": "/lb"},
]

ENERGY = [
    {"symbol": "CL=F", "name": "WTI Crude", "unit": "/bbl"},
    {"symbol": "BZ=F", "name": "Brent Crude", "unit": "/bbl"},
    {"symbol": "NG=F", "name": "Natural Gas", "unit": "/MMBtu"},
]

FOREX = [
    {"symbol": "DX-Y.NYB", "name": "DXY (USD Index)"},
    {"symbol": "EURUSD=X", "name": "EUR/USD"},
    {"symbol": "GBPUSD=X", "name": "GBP/USD"},
    {"symbol": "USDJPY=X", "name": "USD/JPY"},
    {"symbol": "USDCNY=X", "name": "USD/CNY"},
    {"symbol": "USDCHF=X", "name": "USD/CHF"},
    {"symbol": "AUDUSD=X", "name": "AUD/USD"},
    {"symbol": "USDCAD=X", "name": "USD/CAD"},
]

BONDS = [
    {"symbol": "^IRX", "name": "3-Month", "tenor": "3M"},
    {"symbol": "^FVX", "name": "5-Year", "tenor": "5Y"},
    {"symbol": "^TNX", "name": "10-Year", "tenor": "10Y"},
    {"symbol": "^TYX", "name": "30-Year", "tenor": "30Y"},
]

DEFENSE = [
    {"symbol": s, "name": s}
    for s in ("RTX", "LMT", "NOC", "BA", "GD", "HII", "LHX", "LDOS")
]

SHIPPING = [
    {"symbol": "ZIM", "name": "ZIM Shipping", "sector": "Container"},
    {"symbol": "MATX", "name": "Matson", "sector": "Container"},
    {"symbol": "DAC", "name": "Danaos", "sector": "Container"},
    {"symbol": "GOGL", "name": "Golden Ocean", "sector": "Dry Bulk"},
    {"symbol": "SBLK", "name": "Star Bulk", "sector": "Dry Bulk"},
    {"symbol": "FRO", "name": "Frontline", "sector": "Tanker"},
    {"symbol": "STNG", "name": "Scorpio Tankers", "sector": "Tanker"},
    {"symbol": "UPS", "name": "UPS", "sector": "Logistics"},
    {"symbol": "FDX", "name": "FedEx", "sector": "Logistics"},
    {"symbol": "XPO", "name": "XPO Logistics", "sector": "Logistics"},
]

SEMICONDUCTORS = [
    {"symbol": "TSM", "name": "TSMC", "region": "Taiwan"},
    {"symbol": "ASML", "name": "ASML", "region": "Netherlands"},
    {"symbol": "NVDA", "name": "NVIDIA", "region": "US"},
    {"symbol": "AMD", "name": "AMD", "region": "US"},
    {"symbol": "INTC", "name": "Intel", "region": "US"},
    {"symbol": "AVGO", "name": "Broadcom", "region": "US"},
    {"symbol": "MU", "name": "Micron", "region": "US"},
    {"symbol": "QCOM", "name": "Qualcomm", "region": "US"},
]

FOOD_COMMODITIES = [
    {"symbol": "ZW=F", "name": "Wheat", "unit": "/bu"},
    {"symbol": "ZC=F", "name": "Corn", "unit": "/bu"},
    {"symbol": "ZS=F", "name": "Soybeans", "unit": "/bu"},
    {"symbol": "KC=F", "name": "Coffee", "unit": "/lb"},
    {"symbol": "SB=F", "name": "Sugar", "unit": "/lb"},
    {"symbol": "CC=F", "name": "Cocoa", "unit": "/ton"},
]

SYMBOL_GROUPS: dict[str, list[dict]] = {
    "indices": INDICES,
    "metals": METALS,
    "energy": ENERGY,
    "forex": FOREX,
    "bonds": BONDS,
    "defense": DEFENSE,
    "shipping": SHIPPING,
    "semiconductors": SEMICONDUCTORS,
    "food": FOOD_COMMODITIES,
}


def calc_gsr(quotes: dict[str, Quote]) -> float | None:
    """Gold/Silver ratio, or None when either leg is unavailable."""
    gold = quotes.get("GC=F")
    silver = quotes.get("SI=F")
    if not gold or not silver or silver.regular_market_price == 0:
        return None
    return gold.regular_market_price / silver.regular_market_price


# Singleton instance
_client: YahooFinanceClient | None = None


def get_yahoo_client() -> YahooFinanceClient:
    """Get or create Yahoo Finance client instance."""
    global _client
    if _client is None:
        _client = YahooFinanceClient(get_registry())
    return _client
