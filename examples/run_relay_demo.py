"""
Demo script for the LogPipeline.

Runs robots against an in-process flaky sink: shows backpressure, session
forwarding, spooling of undeliverable logs and a spool replay.
"""

import asyncio
import random
import tempfile
from pathlib import Path

import httpx
from loguru import logger

from log_relay import LogEvent, LogPipeline, RelaySettings, SubmitResult


class PrintForwarder:
    """Stands in for the grading service."""

    async def submit(self, producer_id: str, session_id: str, logs_json: str) -> SubmitResult:
        logger.info(f"📦 Session {session_id} from {producer_id}: {len(logs_json)} bytes")
        return SubmitResult(success=True, message="graded")


def flaky_sink(failure_rate: float) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if random.random() < failure_rate:
            return httpx.Response(503)
        return httpx.Response(204)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def robot(pipe: LogPipeline, robot_id: str, n: int) -> int:
    rejected = 0
    for i in range(n):
        tag = "submission" if i % 3 == 0 else "action"
        accepted = await pipe.enqueue(LogEvent(producer_id=robot_id, tag=tag, message=f"step {i}"))
        rejected += not accepted
        await asyncio.sleep(0)
    await pipe.enqueue(
        LogEvent(producer_id=robot_id, tag="submission_end", session_id=f"{robot_id}-lesson")
    )
    return rejected


async def main():
    spool = Path(tempfile.mkdtemp()) / "failed_logs.ndjson"
    settings = RelaySettings(
        queue_capacity=50,
        worker_count=3,
        max_retries=2,
        base_delay_ms=5,
        failure_spool_path=str(spool),
    )

    async with LogPipeline(settings, forwarder=PrintForwarder(), http_client=flaky_sink(0.4)) as pipe:
        logger.info("🚀 Starting relay demo - 5 robots x 40 logs")
        rejected = await asyncio.gather(*(robot(pipe, f"robot-{r}", 40) for r in range(5)))
        h = pipe.health()
        logger.info(
            f"Queue: {h.queue_size}/{h.capacity} | Workers: {h.workers_alive} | "
            f"Rejected (backpressure): {sum(rejected)}"
        )

    spooled = len(spool.read_text().splitlines()) if spool.exists() else 0
    logger.info(f"⏳ {spooled} log(s) spooled; replaying against a healthy sink")

    pipe = LogPipeline(settings, http_client=flaky_sink(0.0))
    resent = await pipe.replay_all()
    await pipe.stop()
    logger.info(f"✅ Replayed {resent} log(s)")


if __name__ == "__main__":
    asyncio.run(main())
