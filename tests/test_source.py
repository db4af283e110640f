"""Tests for the per-source fetch orchestration."""
import asyncio
from datetime import timedelta

import pytest
from pydantic import BaseModel

from commandcenter.core.errors import (
    AuthError,
    MalformedResponseError,
    RateLimitedError,
    TransientError,
)
from commandcenter.core.pipeline_status import PipelineState, PipelineStatusRegistry
from commandcenter.core.rate_limiting import SourcePolicy
from commandcenter.core.source import Source

from conftest import FakeClock


class Quoteish(BaseModel):
    price: float


class Producer:
    """Counts calls and replays a script of results / exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_source(clock, **policy) -> Source:
    policy.setdefault("ttl", timedelta(seconds=60))
    return Source("test", SourcePolicy(**policy), PipelineStatusRegistry(clock), clock)


class TestSourceFetch:
    """Test cache, dedup and backoff composition."""

    def setup_method(self) -> None:
        self.clock = FakeClock()

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_producer(self) -> None:
        source = make_source(self.clock)
        produce = Producer(["a"])

        first = await source.fetch("k", produce, empty=list)
        self.clock.advance(30)
        second = await source.fetch("k", produce, empty=list)

        assert produce.calls == 1
        assert second is first
        assert source.status.get("test").state == PipelineState.OK

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self) -> None:
        source = make_source(self.clock)
        produce = Producer(["a"], ["b"])

        await source.fetch("k", produce, empty=list)
        self.clock.advance(61)

        assert await source.fetch("k", produce, empty=list) == ["b"]
        assert produce.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_fetches_dedupe(self) -> None:
        """Test N concurrent cold fetches issue one upstream call."""
        source = make_source(self.clock)
        produce = Producer({"v": 1})

        results = await asyncio.gather(*(source.fetch("k", produce, empty=dict) for _ in range(8)))

        assert produce.calls == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_rate_limit_engages_backoff(self) -> None:
        """Test a 429 suppresses calls for the cooldown and reports rate-limited."""
        source = make_source(self.clock)
        produce = Producer(RateLimitedError("test", "rate limited", 429), ["fresh"])

        assert await source.fetch("k", produce, empty=list) == []
        assert source.status.get("test").state == PipelineState.RATE_LIMITED

        self.clock.advance(0.001)
        assert await source.fetch("k", produce, empty=list) == []
        assert produce.calls == 1

        self.clock.advance(120)
        assert await source.fetch("k", produce, empty=list) == ["fresh"]
        assert produce.calls == 2

    @pytest.mark.asyncio
    async def test_backoff_serves_stale_value(self) -> None:
        source = make_source(self.clock)
        produce = Producer(["old"], RateLimitedError("test", "rate limited", 429))

        await source.fetch("k", produce, empty=list)
        self.clock.advance(61)

        assert await source.fetch("k", produce, empty=list) == ["old"]
        self.clock.advance(1)
        assert await source.fetch("k", produce, empty=list) == ["old"]
        assert produce.calls == 2

    @pytest.mark.asyncio
    async def test_transient_error_serves_stale_without_backoff(self) -> None:
        """Test a network error falls back to stale data and retries next time."""
        source = make_source(self.clock)
        produce = Producer(["old"], TransientError("test", "timed out"))

        await source.fetch("k", produce, empty=list)
        self.clock.advance(61)

        assert await source.fetch("k", produce, empty=list) == ["old"]
        assert source.status.get("test").state == PipelineState.STALE
        assert source.backoff.should_attempt()

        await source.fetch("k", produce, empty=list)
        assert produce.calls == 3

    @pytest.mark.asyncio
    async def test_transient_error_without_data_is_error(self) -> None:
        source = make_source(self.clock)
        produce = Producer(TransientError("test", "network error: ConnectError"))

        assert await source.fetch("k", produce, empty=lambda: None) is None
        assert source.status.get("test").state == PipelineState.ERROR

    @pytest.mark.asyncio
    async def test_network_backoff_policy(self) -> None:
        """Test sources flagged for it back off on plain network errors too."""
        source = make_source(self.clock, backoff_on_network_error=True)
        produce = Producer(TransientError("test", "timed out"))

        await source.fetch("k", produce, empty=list)
        await source.fetch("k", produce, empty=list)

        assert produce.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        MalformedResponseError("test", "non-JSON response"),
        AuthError("test", "unauthorized", 401),
    ])
    async def test_malformed_and_auth_errors_back_off(self, error) -> None:
        source = make_source(self.clock)
        produce = Producer(error)

        await source.fetch("k", produce, empty=list)
        await source.fetch("k", produce, empty=list)

        assert produce.calls == 1
        assert source.status.get("test").state == PipelineState.ERROR
        assert source.status.get("test").message == str(error)

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_propagate(self) -> None:
        source = make_source(self.clock)
        produce = Producer(KeyError("bug"))

        with pytest.raises(KeyError):
            await source.fetch("k", produce, empty=list)

    @pytest.mark.asyncio
    async def test_queued_source_serializes_requests(self) -> None:
        """Test a source with a gap runs distinct keys one after another."""
        source = make_source(self.clock, gap=timedelta(milliseconds=20))
        active = 0
        peak = 0

        async def produce():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1
            return "ok"

        results = await asyncio.gather(*(source.fetch(f"k{i}", produce, empty=str) for i in range(3)))

        assert results == ["ok", "ok", "ok"]
        assert peak == 1

    @pytest.mark.asyncio
    async def test_queued_task_rechecks_cache_before_calling(self) -> None:
        """Test a queued key filled while waiting never reaches its producer."""
        source = make_source(self.clock, gap=timedelta(milliseconds=20))
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "first"

        second = Producer("from network")

        first_task = asyncio.create_task(source.fetch("k1", slow, empty=str))
        await started.wait()
        second_task = asyncio.create_task(source.fetch("k2", second, empty=str))
        while len(source.queue) == 0:
            await asyncio.sleep(0)

        source.cache.put("k2", "filled while queued")
        release.set()

        assert await first_task == "first"
        assert await second_task == "filled while queued"
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_record_is_malformed(self) -> None:
        """Test a DTO validation failure backs off and serves the fallback."""
        source = make_source(self.clock)

        async def produce():
            return Quoteish(price=None)

        assert await source.fetch("k", produce, empty=list) == []
        assert source.status.get("test").state == PipelineState.ERROR
        assert not source.backoff.should_attempt()

    @pytest.mark.asyncio
    async def test_transient_error_on_uncached_key_is_error(self) -> None:
        """Test stale status needs data for the failing key, not any key."""
        source = make_source(self.clock)
        produce = Producer(["a"], TransientError("test", "timed out"))

        await source.fetch("k1", produce, empty=list)

        assert await source.fetch("k2", produce, empty=list) == []
        assert source.status.get("test").state == PipelineState.ERROR

    @pytest.mark.asyncio
    async def test_premium_flag(self) -> None:
        source = make_source(self.clock)
        source.set_premium(True)

        assert source.status.get("test").using_premium_key is True
        assert source.status.get("test").state == PipelineState.IDLE
