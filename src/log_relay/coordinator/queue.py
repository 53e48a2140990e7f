from __future__ import annotations

import asyncio
from typing import Generic, List, TypeVar

T = TypeVar("T")


class BoundedQueue(Generic[T]):
    """Bounded FIFO admission queue with non-blocking offer.

    ``offer`` never waits: a full queue is reported as ``False`` so the caller
    can push back on the producer. Consumers block in ``get``.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._q: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._q.qsize()

    def full(self) -> bool:
        return self._q.full()

    def offer(self, item: T) -> bool:
        """Insert at the tail, or return False with no side effect if full."""
        try:
            self._q.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self, timeout: float | None = None) -> T:
        """Dequeue the head item; raises ``asyncio.TimeoutError`` on timeout."""
        if timeout is None:
            return await self._q.get()
        return await asyncio.wait_for(self._q.get(), timeout=timeout)

    def task_done(self) -> None:
        self._q.task_done()

    async def join(self) -> None:
        """Wait until every dequeued item has been marked done."""
        await self._q.join()

    def drain_nowait(self) -> List[T]:
        """Remove and return everything currently queued."""
        items: List[T] = []
        while True:
            try:
                items.append(self._q.get_nowait())
            except asyncio.QueueEmpty:
                break
            self._q.task_done()
        return items
