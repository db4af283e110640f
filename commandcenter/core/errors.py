"""Upstream failure taxonomy.

transient    - timeout, connection error, 5xx: serve stale, no backoff
rate-limited - HTTP 429: serve stale, enter backoff
malformed    - non-JSON 200, missing fields: treated like rate-limited
auth         - 401/403: handled by the adapter's auth fallback chain
"""
import httpx


class FetchError(Exception):
    """Base class for expected upstream failures."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.source = source
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.source}] {self.message} (HTTP {self.status_code})"
        return f"[{self.source}] {self.message}"


class TransientError(FetchError):
    """Network timeout, connection failure or 5xx."""


class RateLimitedError(FetchError):
    """Upstream answered 429."""


class MalformedResponseError(FetchError):
    """Upstream answered OK but the body is unusable."""


class ParseError(MalformedResponseError):
    """A parse function could not map the body onto its DTO."""


class AuthError(FetchError):
    """Upstream rejected our credentials (401/403)."""


def classify_response(source: str, response: httpx.Response) -> FetchError | None:
    """Map a non-OK response onto the taxonomy. Returns None for 2xx."""
    status = response.status_code
    if response.is_success:
        return None
    if status == 429:
        return RateLimitedError(source, "rate limited", status)
    if status in (401, 403):
        return AuthError(source, "unauthorized", status)
    return TransientError(source, f"upstream returned {response.reason_phrase or status}", status)


def raise_for_upstream(source: str, response: httpx.Response) -> None:
    """Raise the classified error for a non-OK response."""
    error = classify_response(source, response)
    if error is not None:
        raise error


def wrap_transport_error(source: str, exc: httpx.HTTPError) -> FetchError:
    """Map an httpx transport exception onto the taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        return TransientError(source, "timed out")
    return TransientError(source, f"network error: {exc.__class__.__name__}")


class CircuitOpenError(FetchError):
    """Attempt skipped because the source is still cooling down."""
