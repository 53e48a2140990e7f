from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from ..errors import DeliveryExhausted, SpoolWriteError
from ..metrics import metrics_registry
from ..models import LogEvent
from .delivery import DeliveryClient
from .queue import BoundedQueue
from .spool import FailureSpool


class LogWorker:
    """Drains the dispatcher queue: deliver each event, spool it on exhaustion."""

    def __init__(
        self,
        worker_id: int,
        queue: BoundedQueue[LogEvent],
        delivery: DeliveryClient,
        spool: FailureSpool,
        stop_event: asyncio.Event,
        *,
        poll_interval: float = 0.25,
    ):
        self.worker_id = worker_id
        self._queue = queue
        self._delivery = delivery
        self._spool = spool
        self._stop = stop_event
        self._poll = poll_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"log-worker-{self.worker_id}")

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        logger.debug(f"Worker {self.worker_id} started")
        while not self._stop.is_set():
            try:
                event = await self._queue.get(timeout=self._poll)
            except asyncio.TimeoutError:
                continue
            try:
                await self.process(event)
            except Exception as e:
                metrics_registry.events_lost_total.inc()
                logger.exception(
                    f"Worker {self.worker_id} dropped log for robot {event.producer_id}: {e}"
                )
            finally:
                self._queue.task_done()
                metrics_registry.queue_depth.set(self._queue.size)
        logger.debug(f"Worker {self.worker_id} stopped")

    async def process(self, event: LogEvent) -> bool:
        """Deliver one event; returns True if it reached the sink."""
        if await self._delivery.deliver(event):
            return True

        exhausted = DeliveryExhausted(event, self._delivery.max_retries)
        logger.error(f"Robot {event.producer_id}: {exhausted}; spooling to {self._spool.path}")
        try:
            await self._spool.append(event)
        except SpoolWriteError as e:
            metrics_registry.events_lost_total.inc()
            logger.critical(f"LOG LOST for robot {event.producer_id}: {e}")
        return False
