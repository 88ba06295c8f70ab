"""
Single-flight: concurrent calls for the same key share one execution.

The first caller for a key starts the work; callers arriving while it is in
flight await the same task and get the same result (or exception). The key
is released as soon as the task finishes, so the next call starts fresh.
Calls for different keys never wait on each other.

Owned by one event loop; not safe to share across threads.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from regqual.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    def __init__(self):
        self._calls: dict[str, asyncio.Task[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    def keys(self) -> list[str]:
        return list(self._calls)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._calls.get(key)
        if task is not None:
            logger.info("single_flight_joined", key=key)
        else:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))

        # A cancelled waiter must not cancel the shared work.
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
