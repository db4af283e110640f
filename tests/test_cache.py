"""Tests for the stale-keeping response cache."""
from commandcenter.core.cache import MISSING, ResponseCache, normalize_request_key

from conftest import FakeClock


class TestResponseCache:
    """Test freshness and staleness of cache entries."""

    def setup_method(self) -> None:
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl=60.0, clock=self.clock)

    def test_read_after_write_returns_same_object(self) -> None:
        """Test a read right after a write returns that exact value."""
        value = {"price": 150}
        self.cache.put("k", value)

        assert self.cache.get("k") is value

    def test_entry_goes_stale_after_ttl(self) -> None:
        """Test an entry older than the TTL is no longer fresh but still retrievable."""
        self.cache.put("k", "v")

        self.clock.advance(60.0)
        assert self.cache.is_fresh("k")

        self.clock.advance(0.001)
        assert self.cache.get("k") is MISSING
        assert self.cache.stale("k") == "v"
        assert self.cache.peek("k").value == "v"

    def test_per_call_ttl_override(self) -> None:
        """Test a caller-supplied TTL replaces the default."""
        self.cache.put("k", "v")
        self.clock.advance(120.0)

        assert not self.cache.is_fresh("k")
        assert self.cache.is_fresh("k", ttl=600.0)

    def test_overwrite_refreshes_timestamp(self) -> None:
        """Test a second write restarts the entry's age."""
        self.cache.put("k", 1)
        self.clock.advance(50.0)
        self.cache.put("k", 2)
        self.clock.advance(50.0)

        assert self.cache.get("k") == 2
        assert self.cache.age("k") == 50.0

    def test_falsy_values_are_cached(self) -> None:
        """Test None and empty lists are distinguishable from a miss."""
        self.cache.put("none", None)
        self.cache.put("empty", [])

        assert self.cache.get("none") is None
        assert self.cache.get("empty") == []
        assert self.cache.get("absent") is MISSING
        assert not MISSING

    def test_missing_key(self) -> None:
        """Test lookups on unknown keys."""
        assert self.cache.stale("absent", "default") == "default"
        assert self.cache.age("absent") is None
        assert "absent" not in self.cache
        assert len(self.cache) == 0


class TestNormalizeRequestKey:
    """Test request key normalization."""

    def test_param_order_does_not_matter(self) -> None:
        assert normalize_request_key("/x?b=2&a=1") == normalize_request_key("/x?a=1&b=2")

    def test_different_params_differ(self) -> None:
        assert normalize_request_key("/x?a=1") != normalize_request_key("/x?a=2")

    def test_path_without_query(self) -> None:
        assert normalize_request_key("/api/v3/global") == "/api/v3/global?"

    def test_empty_segments_dropped(self) -> None:
        assert normalize_request_key("/x?a=1&&b=2&") == "/x?a=1&b=2"
