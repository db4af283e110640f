"""Upstream request helpers.

Every adapter goes through these so transport errors, HTTP statuses and
unusable bodies all surface as the FetchError taxonomy.
"""
import json
from typing import Any

import httpx

from commandcenter.core.errors import (
    MalformedResponseError,
    raise_for_upstream,
    wrap_transport_error,
)


async def request(
    client: httpx.AsyncClient,
    source: str,
    method: str,
    url: str,
    *,
    timeout: float,
    **kwargs,
) -> httpx.Response:
    """Send a request and raise the classified error for non-OK answers."""
    try:
        response = await client.request(method, url, timeout=timeout, **kwargs)
    except httpx.HTTPError as e:
        raise wrap_transport_error(source, e) from e
    raise_for_upstream(source, response)
    return response


def parse_json_body(source: str, text: str) -> Any:
    """Decode a JSON body, rejecting HTML/plain-text error pages served with 200."""
    stripped = text.lstrip()
    if not stripped.startswith(("{", "[")):
        raise MalformedResponseError(source, f"non-JSON response: {stripped[:80]!r}")
    try:
        return json.loads(stripped)
    except ValueError as e:
        raise MalformedResponseError(source, "invalid JSON") from e


async def get_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    *,
    timeout: float,
    params: dict | None = None,
    headers: dict | None = None,
) -> Any:
    response = await request(client, source, "GET", url, timeout=timeout, params=params, headers=headers)
    return parse_json_body(source, response.text)


async def get_text(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    *,
    timeout: float,
    params: dict | None = None,
    headers: dict | None = None,
) -> str:
    response = await request(client, source, "GET", url, timeout=timeout, params=params, headers=headers)
    return response.text


async def post_form(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    data: dict,
    *,
    timeout: float,
) -> Any:
    """POST an urlencoded form and decode the JSON answer."""
    response = await request(client, source, "POST", url, timeout=timeout, data=data)
    return parse_json_body(source, response.text)
