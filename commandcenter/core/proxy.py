"""Path-prefix proxy table.

``/api/coingecko/*`` maps to ``https://api.coingecko.com/*`` and so on. The
same table backs the pass-through proxy routes, so a browser front-end sees
identical behavior in development and production.
"""
PROXY_ROUTES: dict[str, str] = {
    "coingecko": "https://api.coingecko.com",
    "polymarket": "https://gamma-api.polymarket.com",
    "fng": "https://api.alternative.me",
    "rss": "https://api.rss2json.com",
    "yahoo": "https://query2.finance.yahoo.com",
}

PROXY_PREFIX = "/api"


def upstream_for(prefix: str) -> str | None:
    """Upstream base URL for a proxy prefix name, or None."""
    return PROXY_ROUTES.get(prefix.strip("/"))


def rewrite(path: str) -> str | None:
    """Rewrite ``/api/<prefix>/rest`` into the upstream URL, or None if unknown."""
    if not path.startswith(PROXY_PREFIX + "/"):
        return None
    prefix, _, rest = path[len(PROXY_PREFIX) + 1:].partition("/")
    base = upstream_for(prefix)
    if base is None:
        return None
    return f"{base}/{rest}" if rest else base
