"""Serialized request queue with a fixed gap between dispatches.

Used only for upstreams with tight per-minute quotas (CoinGecko free tier).
"""
import asyncio
from collections import deque
from typing import Awaitable, Callable, TypeVar

from commandcenter.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class RateLimitedQueue:
    """FIFO queue drained by a single worker task.

    At least ``gap`` seconds pass between the end of one task and the start
    of the next, also when the queue went idle in between.
    """

    def __init__(self, gap: float, name: str = "queue"):
        self.gap = gap
        self.name = name
        self._tasks: deque[tuple[Callable[[], Awaitable], asyncio.Future]] = deque()
        self._worker: asyncio.Task | None = None
        self._last_finished: float | None = None

    def enqueue(self, task: Callable[[], Awaitable[T]]) -> asyncio.Future:
        """Append ``task``; the returned future settles with its outcome."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._tasks.append((task, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return future

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._tasks:
            task, future = self._tasks.popleft()
            if future.cancelled():
                continue

            if self._last_finished is not None:
                wait = self.gap - (loop.time() - self._last_finished)
                if wait > 0:
                    await asyncio.sleep(wait)

            try:
                result = await task()
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._last_finished = loop.time()

            if self._tasks:
                logger.debug("queue_waiting", queue=self.name, pending=len(self._tasks), gap=self.gap)

    def __len__(self) -> int:
        return len(self._tasks)
