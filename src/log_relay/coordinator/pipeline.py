from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

from ..config import RelaySettings
from ..errors import AdmissionRejected, SpoolWriteError
from ..metrics import metrics_registry
from ..models import LogEvent
from ..utils import now_ms
from .delivery import DeliveryClient
from .pool import WorkerPool
from .queue import BoundedQueue
from .replay import ReplayReport, ReplayService
from .session import SessionAggregator
from .spool import FailureSpool
from .types import SubmissionForwarder


@dataclass(frozen=True)
class PipelineHealth:
    workers_alive: int
    queue_size: int
    capacity: int
    open_sessions: int


class LogPipeline:
    """Ingestion-and-dispatch engine: queue, workers, spool, replay, sessions.

    Example:
        async with LogPipeline(get_settings(), forwarder=my_forwarder) as pipe:
            accepted = await pipe.enqueue(event)
            ...
            resent = await pipe.replay_all()
    """

    def __init__(
        self,
        settings: RelaySettings,
        *,
        forwarder: Optional[SubmissionForwarder] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self.queue: BoundedQueue[LogEvent] = BoundedQueue(settings.queue_capacity)
        self.delivery = DeliveryClient(
            settings.sink_url,
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            timeout_sec=settings.sink_timeout_sec,
            client=http_client,
        )
        self.spool = FailureSpool(settings.failure_spool_path)
        quarantine = FailureSpool(settings.quarantine_path) if settings.quarantine_path else None
        self.replayer = ReplayService(self.spool, self.delivery, quarantine=quarantine)
        self.pool = WorkerPool(
            self.queue,
            self.delivery,
            self.spool,
            settings.worker_count,
            poll_interval=settings.worker_poll_sec,
        )
        self.sessions: Optional[SessionAggregator] = None
        if forwarder is not None:
            self.sessions = SessionAggregator(
                forwarder,
                session_tags=settings.session_tags,
                end_tag=settings.end_tag,
                forward_timeout=settings.forward_timeout_sec,
            )
        else:
            logger.warning("No submission forwarder configured; session aggregation disabled")
        self._started = False
        self._stopped = False

    async def __aenter__(self) -> "LogPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop(drain=exc_type is None, timeout=self._settings.shutdown_timeout_sec)

    async def start(self) -> None:
        if self._stopped:
            raise RuntimeError("LogPipeline cannot be restarted after stop(); create a new one")
        if self._started:
            return
        self.pool.start()
        self._started = True

    async def stop(self, drain: bool = False, timeout: Optional[float] = None) -> None:
        """Stop workers; events still queued afterwards go to the spool.

        Args:
            drain: Wait for workers to empty the queue first
            timeout: Upper bound (seconds) on the drain wait
        """
        if self._started and drain:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Drain timed out with {self.queue.size} log(s) still queued")

        if self._started:
            await self.pool.stop()
        await self._spool_leftovers()
        await self.delivery.aclose()
        self._started = False
        self._stopped = True

    async def _spool_leftovers(self) -> None:
        leftovers = self.queue.drain_nowait()
        metrics_registry.queue_depth.set(0)
        if not leftovers:
            return
        logger.warning(f"Spooling {len(leftovers)} undelivered log(s) at shutdown")
        for event in leftovers:
            try:
                await self.spool.append(event)
            except SpoolWriteError as e:
                metrics_registry.events_lost_total.inc()
                logger.critical(f"LOG LOST for robot {event.producer_id}: {e}")

    async def enqueue(self, event: LogEvent) -> bool:
        """Offer one event; False means the queue is full and nothing happened."""
        event = event.stamped(now_ms())
        if self.pool.stopping or not self.queue.offer(event):
            metrics_registry.events_admitted_total.labels(outcome="rejected").inc()
            logger.debug(f"Queue full, log rejected for robot {event.producer_id}")
            return False

        metrics_registry.events_admitted_total.labels(outcome="accepted").inc()
        metrics_registry.queue_depth.set(self.queue.size)

        if self.sessions is not None:
            try:
                await self.sessions.observe(event)
            except Exception as e:
                logger.exception(f"Session aggregation failed for robot {event.producer_id}: {e}")
        return True

    async def enqueue_or_raise(self, event: LogEvent) -> None:
        if not await self.enqueue(event):
            raise AdmissionRejected(self.queue.capacity)

    async def replay_all(self) -> int:
        """Resend every spooled event; returns how many were delivered."""
        return await self.replayer.replay_all()

    async def replay(self) -> ReplayReport:
        return await self.replayer.replay()

    def health(self) -> PipelineHealth:
        return PipelineHealth(
            workers_alive=self.pool.alive,
            queue_size=self.queue.size,
            capacity=self.queue.capacity,
            open_sessions=self.sessions.open_sessions if self.sessions else 0,
        )
