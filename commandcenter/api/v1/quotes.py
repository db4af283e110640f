"""Market quote endpoints (Yahoo Finance)."""
from fastapi import APIRouter, Depends, HTTPException, Query

from commandcenter.integrations.yahoo import (
    SYMBOL_GROUPS,
    YahooFinanceClient,
    calc_gsr,
    get_yahoo_client,
)

router = APIRouter(prefix="/quotes", tags=["quotes"])

MAX_SYMBOLS = 50


@router.get("")
async def get_quotes(
    symbols: str = Query(..., min_length=1, description="Comma-separated symbols, e.g. AAPL,^GSPC"),
    client: YahooFinanceClient = Depends(get_yahoo_client),
):
    """Quotes for an ad-hoc symbol list.

    Symbols the upstream has never answered for are omitted.
    """
    wanted = [s.strip() for s in symbols.split(",") if s.strip()]
    if len(wanted) > MAX_SYMBOLS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_SYMBOLS} symbols per request")
    quotes = await client.fetch_quotes(wanted)
    return {"quotes": list(quotes.values()), "count": len(quotes)}


@router.get("/groups")
async def list_groups():
    """Available symbol groups and their members."""
    return {
        name: [item["symbol"] for item in items]
        for name, items in SYMBOL_GROUPS.items()
    }


@router.get("/groups/{group}")
async def get_group(group: str, client: YahooFinanceClient = Depends(get_yahoo_client)):
    """Quotes for a named group (indices, metals, energy, forex, ...)."""
    try:
        quotes = await client.fetch_group(group)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    items = []
    for item in SYMBOL_GROUPS[group]:
        quote = quotes.get(item["symbol"])
        if quote is not None:
            items.append({**item, "quote": quote})

    response = {"group": group, "items": items, "count": len(items)}
    if group == "metals":
        response["gold_silver_ratio"] = calc_gsr(quotes)
    return response
