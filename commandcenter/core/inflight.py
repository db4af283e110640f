"""Inflight request deduplication.

Concurrent callers asking for the same key share one underlying request.
The marker is installed synchronously, before the producer's first await,
so a second caller arriving on the same tick always sees it.
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class InflightDeduplicator:
    """At most one pending request per key."""

    def __init__(self):
        self._pending: dict[str, asyncio.Task] = {}

    def dedupe(self, key: str, producer: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        """Return an awaitable for ``key``, starting ``producer`` only if none is pending.

        Every caller receives the same result or the same exception. A caller
        that is cancelled while waiting does not cancel the shared request.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._pending[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
        return asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    def pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
