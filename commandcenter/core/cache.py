"""In-memory TTL cache that keeps stale entries.

Entries are never evicted, only overwritten on refresh. A stale entry is
still returned by ``peek``/``stale`` so adapters can serve the last good
value while an upstream is failing.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


class _Missing:
    """Sentinel for a cache miss (None and [] are valid cached values)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class CacheEntry(Generic[T]):
    key: str
    value: T
    fetched_at: float


def normalize_request_key(path: str) -> str:
    """Normalize a request path so equivalent queries share a cache key.

    The path is split from its query string and the parameters are sorted
    alphabetically, so ``/x?b=2&a=1`` and ``/x?a=1&b=2`` collide.
    """
    base, _, query = path.partition("?")
    params = sorted(p for p in query.split("&") if p)
    return f"{base}?{'&'.join(params)}"


class ResponseCache(Generic[T]):
    """Per-source cache from normalized request key to value."""

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str, ttl: float | None = None) -> T:
        """Return the value if fresh, else MISSING."""
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        limit = self.ttl if ttl is None else ttl
        if self._clock() - entry.fetched_at > limit:
            return MISSING
        return entry.value

    def is_fresh(self, key: str, ttl: float | None = None) -> bool:
        return self.get(key, ttl) is not MISSING

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Return the entry regardless of age."""
        return self._entries.get(key)

    def stale(self, key: str, default: T | None = None) -> T | None:
        """Return the last stored value regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else default

    def put(self, key: str, value: T) -> CacheEntry[T]:
        entry = CacheEntry(key=key, value=value, fetched_at=self._clock())
        self._entries[key] = entry
        return entry

    def age(self, key: str) -> float | None:
        """Seconds since the entry was stored, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._clock() - entry.fetched_at

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
