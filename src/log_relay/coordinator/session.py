"""
Per-robot submission session aggregation.

Events tagged ``submission`` are buffered per producer. A ``submission_end``
event flushes that producer's buffer as one JSON bundle to the submission
service and clears it. Forwarding is at-most-once: a failed bundle is logged
and dropped, never retried or spooled.

Append and flush for the same producer are serialized by a per-producer
lock, so an event arriving during a flush lands in the next session.
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

from loguru import logger

from ..errors import SubmissionForwardError
from ..metrics import metrics_registry
from ..models import SUBMISSION_END_TAG, SUBMISSION_TAG, LogEvent, normalize_tag
from .types import SubmissionForwarder


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    BUFFERING = "buffering"


class SessionOutcome(str, Enum):
    """Result of a flush triggered by the end tag."""

    FORWARDED = "forwarded"
    FAILED = "failed"
    EMPTY = "empty"


def serialize_bundle(events: Iterable[LogEvent]) -> str:
    """JSON array of events in buffer order."""
    return json.dumps([e.model_dump(mode="json", by_alias=True) for e in events])


class SessionAggregator:
    """Owns the per-producer session buffers.

    Args:
        forwarder: Receives completed bundles
        session_tags: Tags whose events are buffered (case-insensitive)
        end_tag: Tag that triggers flush-and-forward
        forward_timeout: Seconds before a forwarder call counts as failed
    """

    def __init__(
        self,
        forwarder: SubmissionForwarder,
        *,
        session_tags: Iterable[str] = (SUBMISSION_TAG,),
        end_tag: str = SUBMISSION_END_TAG,
        forward_timeout: Optional[float] = 10.0,
    ):
        self._forwarder = forwarder
        self._session_tags: FrozenSet[str] = frozenset(normalize_tag(t) for t in session_tags)
        self._end_tag = normalize_tag(end_tag)
        self._timeout = forward_timeout
        self._buffers: Dict[str, List[LogEvent]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def session_tags(self) -> FrozenSet[str]:
        return self._session_tags

    @property
    def open_sessions(self) -> int:
        return len(self._buffers)

    def state(self, producer_id: str) -> SessionState:
        if self._buffers.get(producer_id):
            return SessionState.BUFFERING
        return SessionState.NO_SESSION

    def buffered(self, producer_id: str) -> List[LogEvent]:
        return list(self._buffers.get(producer_id, ()))

    async def observe(self, event: LogEvent) -> Optional[SessionOutcome]:
        """Apply one event to its producer's session.

        Returns the flush outcome for an end-tag event, otherwise None.
        """
        tag = event.normalized_tag
        buffer_it = tag in self._session_tags
        flush_it = tag == self._end_tag
        if not (buffer_it or flush_it):
            return None

        async with self._locks[event.producer_id]:
            if buffer_it:
                self._buffers.setdefault(event.producer_id, []).append(event)
                logger.debug(f"Stored in memory log for robot {event.producer_id} tag {event.tag}")
            if flush_it:
                outcome = await self._flush(event)
            else:
                outcome = None
            metrics_registry.open_sessions.set(len(self._buffers))
        return outcome

    async def _flush(self, end: LogEvent) -> SessionOutcome:
        logs = self._buffers.pop(end.producer_id, [])
        if not logs:
            logger.warning(f"No logs found for robot {end.producer_id} when {self._end_tag} received")
            metrics_registry.sessions_total.labels(outcome=SessionOutcome.EMPTY.value).inc()
            return SessionOutcome.EMPTY

        try:
            await self._forward(end.producer_id, end.session_id or "", logs)
        except SubmissionForwardError as e:
            logger.error(f"Submission logs for robot {end.producer_id} failed to send: {e}")
            outcome = SessionOutcome.FAILED
        else:
            logger.info(
                f"Submission logs for robot {end.producer_id} sent successfully "
                f"({len(logs)} log(s), session {end.session_id})"
            )
            outcome = SessionOutcome.FORWARDED

        metrics_registry.sessions_total.labels(outcome=outcome.value).inc()
        return outcome

    async def _forward(self, producer_id: str, session_id: str, logs: List[LogEvent]) -> None:
        try:
            call = self._forwarder.submit(producer_id, session_id, serialize_bundle(logs))
            if self._timeout is None:
                result = await call
            else:
                result = await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise SubmissionForwardError(f"timed out after {self._timeout}s") from e
        except Exception as e:
            raise SubmissionForwardError(f"{type(e).__name__}: {e}") from e

        if not result.success:
            raise SubmissionForwardError(result.message or "service reported failure")
