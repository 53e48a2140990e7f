"""
Sink delivery with bounded retries and linear backoff.

Each ``deliver`` call makes up to ``max_retries`` push attempts. The pause
before attempt ``i + 1`` is ``base_delay_ms * i``. Transient failures stay
inside this module; callers only see the final boolean.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from ..models import LogEvent
from ..metrics import metrics_registry
from ..utils import ms_to_ns, now_ms


def build_sink_payload(event: LogEvent) -> Dict[str, Any]:
    """Loki push body for a single event.

    The timestamp goes out as nanoseconds in a string. JSON encoding escapes
    quotes and newlines in the message.
    """
    ts_ms = event.timestamp if event.timestamp is not None else now_ms()
    return {
        "streams": [
            {
                "stream": {
                    "robot": event.producer_id,
                    "level": event.level,
                    "tag": event.tag or "",
                },
                "values": [[str(ms_to_ns(ts_ms)), event.message]],
            }
        ]
    }


def backoff_ms(base_delay_ms: int, attempt: int) -> int:
    """Pause after failed attempt ``attempt`` (1-indexed)."""
    return base_delay_ms * attempt


class DeliveryClient:
    """Pushes single events to the sink.

    Args:
        sink_url: Push endpoint of the log backend
        max_retries: Upper bound on push attempts per ``deliver`` call
        base_delay_ms: Linear backoff unit
        timeout_sec: Per-request timeout for the HTTP client
        client: Optional pre-built ``httpx.AsyncClient`` (not closed by us)
    """

    def __init__(
        self,
        sink_url: str,
        *,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        timeout_sec: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._url = sink_url
        self._max_retries = max_retries
        self._base_delay_ms = base_delay_ms
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_sec)
        self._interrupted = asyncio.Event()

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    def interrupt(self) -> None:
        """Cut short any pending backoff; later ``deliver`` calls stop after one attempt."""
        self._interrupted.set()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def deliver(self, event: LogEvent) -> bool:
        logger.debug(
            f"Attempting to send log to sink for robot {event.producer_id} level {event.level}"
        )
        payload = build_sink_payload(event)

        for attempt in range(1, self._max_retries + 1):
            try:
                await self._push(payload)
                metrics_registry.delivery_attempts_total.labels(outcome="ok").inc()
                metrics_registry.deliveries_total.labels(outcome="delivered").inc()
                return True
            except Exception as exc:
                metrics_registry.delivery_attempts_total.labels(outcome="error").inc()
                logger.warning(
                    f"Failed to send log to sink (attempt {attempt}/{self._max_retries}): "
                    f"{type(exc).__name__}: {exc}"
                )

            if attempt == self._max_retries:
                break
            if not await self._pause(backoff_ms(self._base_delay_ms, attempt) / 1000.0):
                logger.info(f"Retry for robot {event.producer_id} abandoned: shutting down")
                break

        metrics_registry.deliveries_total.labels(outcome="exhausted").inc()
        return False

    async def _push(self, payload: Dict[str, Any]) -> None:
        start = time.perf_counter()
        try:
            resp = await self._client.post(self._url, json=payload)
            resp.raise_for_status()
        finally:
            metrics_registry.delivery_latency_ms.observe((time.perf_counter() - start) * 1000.0)
        logger.debug(f"Sent log to sink OK: {resp.status_code}")

    async def _pause(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless interrupted; False means stop retrying."""
        if self._interrupted.is_set():
            return False
        try:
            await asyncio.wait_for(self._interrupted.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
