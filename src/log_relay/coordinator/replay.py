from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from ..errors import SpoolParseError
from ..metrics import metrics_registry
from ..models import LogEvent
from .delivery import DeliveryClient
from .spool import FailureSpool


@dataclass(frozen=True)
class ReplayReport:
    delivered: int
    failed: int
    poison: int
    quarantined: int

    @property
    def remaining(self) -> int:
        return self.failed + self.poison - self.quarantined


def parse_spool_line(line: str) -> LogEvent:
    try:
        return LogEvent.from_json_line(line)
    except (ValidationError, ValueError) as e:
        raise SpoolParseError(line, e) from e


class ReplayService:
    """Resends spooled events straight to the sink, bypassing the queue.

    Lines that still fail keep their original text. Unparseable lines are
    kept verbatim and never retried as data, unless a quarantine spool is
    configured, in which case they are moved there.
    """

    def __init__(
        self,
        spool: FailureSpool,
        delivery: DeliveryClient,
        *,
        quarantine: Optional[FailureSpool] = None,
    ):
        self._spool = spool
        self._delivery = delivery
        self._quarantine = quarantine
        self._lock = asyncio.Lock()

    async def replay_all(self) -> int:
        """Returns the number of spooled events delivered."""
        report = await self.replay()
        return report.delivered

    async def replay(self) -> ReplayReport:
        async with self._lock:
            snap = await self._spool.read()
            if not snap.lines:
                metrics_registry.spool_poison_lines.set(0)
                return ReplayReport(0, 0, 0, 0)

            logger.info(f"Replaying {len(snap.lines)} spooled log(s) from {self._spool.path}")
            remaining: List[str] = []
            poison: List[str] = []
            delivered = failed = 0

            for line in snap.lines:
                try:
                    event = parse_spool_line(line)
                except SpoolParseError as e:
                    logger.debug(str(e))
                    poison.append(line)
                    if self._quarantine is None:
                        remaining.append(line)
                    continue

                if await self._delivery.deliver(event):
                    delivered += 1
                    metrics_registry.replay_results_total.labels(result="delivered").inc()
                else:
                    failed += 1
                    remaining.append(line)
                    metrics_registry.replay_results_total.labels(result="failed").inc()

            quarantined = await self._handle_poison(poison)
            await self._spool.replace_with(remaining, preserve_from=snap.offset)

        logger.info(
            f"Replay done: delivered={delivered} failed={failed} "
            f"poison={len(poison)} quarantined={quarantined}"
        )
        return ReplayReport(delivered, failed, len(poison), quarantined)

    async def _handle_poison(self, poison: List[str]) -> int:
        metrics_registry.spool_poison_lines.set(len(poison))
        if not poison:
            return 0

        if self._quarantine is not None:
            await self._quarantine.append_lines(poison)
            metrics_registry.replay_results_total.labels(result="quarantined").inc(len(poison))
            logger.error(
                f"Moved {len(poison)} unparseable spool line(s) to {self._quarantine.path}"
            )
            return len(poison)

        metrics_registry.replay_results_total.labels(result="poison").inc(len(poison))
        logger.error(
            f"{len(poison)} unparseable line(s) retained in {self._spool.path}; "
            "clean them up manually or configure a quarantine path"
        )
        return 0
