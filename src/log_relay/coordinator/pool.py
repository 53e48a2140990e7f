from __future__ import annotations

import asyncio
from typing import List

from loguru import logger

from ..models import LogEvent
from .delivery import DeliveryClient
from .queue import BoundedQueue
from .spool import FailureSpool
from .worker import LogWorker


class WorkerPool:
    """Fixed set of symmetric workers sharing one queue and one stop signal."""

    def __init__(
        self,
        queue: BoundedQueue[LogEvent],
        delivery: DeliveryClient,
        spool: FailureSpool,
        worker_count: int,
        *,
        poll_interval: float = 0.25,
    ):
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        self._delivery = delivery
        self._stop = asyncio.Event()
        self._workers: List[LogWorker] = [
            LogWorker(i, queue, delivery, spool, self._stop, poll_interval=poll_interval)
            for i in range(worker_count)
        ]

    @property
    def size(self) -> int:
        return len(self._workers)

    @property
    def alive(self) -> int:
        return sum(1 for w in self._workers if w.alive)

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        for w in self._workers:
            w.start()
        logger.info(f"Started {len(self._workers)} log workers")

    async def stop(self) -> None:
        """Signal all workers; each finishes its current attempt and exits."""
        self._stop.set()
        self._delivery.interrupt()
        results = await asyncio.gather(*(w.wait() for w in self._workers), return_exceptions=True)
        for w, res in zip(self._workers, results):
            if isinstance(res, BaseException):
                logger.error(f"Worker {w.worker_id} exited with {type(res).__name__}: {res}")
        logger.info("Log workers stopped")
