"""Per-source fetch orchestration.

A Source bundles the four primitives for one upstream:

    cache hit?  -> return it
    backing off? -> return stale cache (or empty)
    dedupe by key -> (queue) -> re-check cache -> producer()
    success -> cache + status ok + close breaker
    failure -> backoff per taxonomy + status + stale cache (or empty)

Adapters hand ``fetch`` a producer coroutine that performs the request and
parses the body; expected failures are FetchError subclasses and never reach
the adapter's caller.
"""
import time
from typing import Awaitable, Callable, Iterable, TypeVar

from pydantic import ValidationError

from commandcenter.core.backoff import FailureBackoff
from commandcenter.core.cache import MISSING, Clock, ResponseCache
from commandcenter.core.errors import (
    AuthError,
    CircuitOpenError,
    FetchError,
    MalformedResponseError,
    ParseError,
    RateLimitedError,
)
from commandcenter.core.inflight import InflightDeduplicator
from commandcenter.core.logging import get_logger
from commandcenter.core.pipeline_status import PipelineState, PipelineStatusRegistry
from commandcenter.core.queue import RateLimitedQueue
from commandcenter.core.rate_limiting import SourcePolicy

T = TypeVar("T")

logger = get_logger(__name__)


class Source:
    """Shared cache, inflight map, breaker and optional queue for one upstream."""

    def __init__(
        self,
        name: str,
        policy: SourcePolicy,
        status: PipelineStatusRegistry,
        clock: Clock = time.monotonic,
    ):
        self.name = name
        self.policy = policy
        self.status = status
        self.cache: ResponseCache = ResponseCache(policy.ttl_seconds, clock)
        self.inflight = InflightDeduplicator()
        self.backoff = FailureBackoff(policy.cooldown_seconds, clock)
        self.queue = (
            RateLimitedQueue(policy.gap_seconds, name=name)
            if policy.gap_seconds
            else None
        )

    async def fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        empty: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        """Best-effort value for ``key``: fresh, stale, or ``empty()``."""
        fresh = self.cache.get(key, ttl)
        if fresh is not MISSING:
            return fresh

        if not self.backoff.should_attempt():
            logger.debug(
                "backoff_active",
                source=self.name,
                key=key,
                remaining=round(self.backoff.remaining(), 1),
            )
            return self._fallback(key, empty)

        try:
            return await self.inflight.dedupe(key, lambda: self._load(key, producer, ttl))
        except FetchError:
            return self._fallback(key, empty)

    async def _load(self, key: str, producer: Callable[[], Awaitable[T]], ttl: float | None) -> T:
        if self.queue is not None:
            return await self.queue.enqueue(lambda: self._dispatch(key, producer, ttl))
        return await self._dispatch(key, producer, ttl)

    async def _dispatch(self, key: str, producer: Callable[[], Awaitable[T]], ttl: float | None) -> T:
        # Another queued request may have filled the cache while we waited
        fresh = self.cache.get(key, ttl)
        if fresh is not MISSING:
            return fresh
        if not self.backoff.should_attempt():
            raise CircuitOpenError(self.name, "cooling down")

        value = await self.call(producer, key=key)
        self.cache.put(key, value)
        return value

    async def call(
        self,
        producer: Callable[[], Awaitable[T]],
        key: str = "",
        cached_keys: Iterable[str] | None = None,
    ) -> T:
        """Run one upstream call with status and backoff bookkeeping, no caching.

        ``cached_keys`` names the cache entries a failure would fall back to;
        it defaults to ``key`` itself.
        """
        fallback_keys = [key] if cached_keys is None else list(cached_keys)
        self.status.set_state(self.name, PipelineState.LOADING)
        try:
            value = await producer()
        except FetchError as exc:
            self.record_failure(exc, key, fallback_keys)
            raise
        except ValidationError as e:
            # A DTO rejected an upstream field: same as any malformed body
            exc = ParseError(self.name, f"invalid record: {e.error_count()} error(s)")
            self.record_failure(exc, key, fallback_keys)
            raise exc from e
        self.backoff.record_success()
        self.status.set_state(self.name, PipelineState.OK, message="")
        return value

    def record_failure(self, exc: FetchError, key: str = "", cached_keys: Iterable[str] | None = None) -> None:
        """Apply the taxonomy: backoff and pipeline state for ``exc``."""
        if isinstance(exc, RateLimitedError):
            self.backoff.record_failure()
            state = PipelineState.RATE_LIMITED
        elif isinstance(exc, (MalformedResponseError, AuthError)):
            self.backoff.record_failure()
            state = PipelineState.ERROR
        else:
            if self.policy.backoff_on_network_error:
                self.backoff.record_failure()
            keys = [key] if cached_keys is None else cached_keys
            state = PipelineState.STALE if self.has_data(keys) else PipelineState.ERROR

        self.status.set_state(self.name, state, message=str(exc))
        logger.warning(
            "upstream_failed",
            source=self.name,
            key=key,
            error=exc.__class__.__name__,
            status_code=exc.status_code,
            detail=exc.message,
            backing_off=not self.backoff.should_attempt(),
        )

    def set_premium(self, using_premium_key: bool) -> None:
        """Record whether the current fetches run on a user-supplied key."""
        current = self.status.get(self.name)
        self.status.set_state(self.name, current.state, using_premium_key=using_premium_key)

    def has_data(self, keys: Iterable[str]) -> bool:
        """True if any of ``keys`` has a cached value, of any age."""
        return any(k in self.cache for k in keys)

    def _fallback(self, key: str, empty: Callable[[], T]) -> T:
        stale = self.cache.stale(key, MISSING)
        if stale is MISSING:
            return empty()
        return stale
