"""Pass-through proxy routes.

``GET /api/<prefix>/<path>`` forwards to the upstream named in
``core.proxy.PROXY_ROUTES`` with the query string intact. No caching or
backoff here; callers wanting those use the normalized v1 endpoints.
"""
import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from commandcenter.core.logging import get_logger
from commandcenter.core.proxy import PROXY_PREFIX, rewrite
from commandcenter.core.registry import SourceRegistry, get_registry

logger = get_logger(__name__)

router = APIRouter(prefix=PROXY_PREFIX, tags=["proxy"])

PROXY_TIMEOUT = 20.0
# Response headers worth relaying to the browser
FORWARDED_HEADERS = ("content-type", "cache-control", "etag", "last-modified")


@router.get("/{prefix}/{path:path}")
async def proxy_get(
    prefix: str,
    path: str,
    request: Request,
    registry: SourceRegistry = Depends(get_registry),
):
    """Forward a GET to the mapped upstream."""
    url = rewrite(request.url.path)
    if url is None:
        raise HTTPException(status_code=404, detail=f"Unknown proxy prefix: {prefix}")

    try:
        upstream = await registry.http.get(
            url,
            params=list(request.query_params.multi_items()),
            timeout=PROXY_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.warning("proxy_failed", prefix=prefix, path=path, error=e.__class__.__name__)
        raise HTTPException(status_code=502, detail=f"Upstream {prefix} unreachable")

    headers = {k: v for k, v in upstream.headers.items() if k.lower() in FORWARDED_HEADERS}
    return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)
