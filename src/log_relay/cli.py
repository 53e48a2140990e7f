from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger
from pydantic import ValidationError

from .config import RelaySettings, get_settings
from .coordinator import FailureSpool, LogPipeline
from .coordinator.replay import parse_spool_line
from .errors import SpoolParseError
from .log_config import configure_logging
from .models import LogEvent
from .utils import iter_ndjson

app = typer.Typer(help="Robot log relay CLI (spool replay, inspection, ingestion)")

# ---------------------------
# Common options
# ---------------------------


def sink_opt() -> Optional[str]:
    return typer.Option(None, "--sink-url", envvar="LOG_RELAY_SINK_URL", help="Sink push URL")


def spool_opt() -> Optional[str]:
    return typer.Option(
        None, "--spool", envvar="LOG_RELAY_FAILURE_SPOOL_PATH", help="Failure spool file"
    )


def _settings(sink_url: Optional[str] = None, spool: Optional[str] = None) -> RelaySettings:
    overrides = {}
    if sink_url:
        overrides["sink_url"] = sink_url
    if spool:
        overrides["failure_spool_path"] = spool
    settings = get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)
    return settings


# ---------------------------
# Spool
# ---------------------------


@app.command("replay")
def replay(sink_url: Optional[str] = sink_opt(), spool: Optional[str] = spool_opt()):
    """Resend every spooled log to the sink; keep only what still fails."""
    settings = _settings(sink_url, spool)

    async def _run():
        pipe = LogPipeline(settings)
        try:
            report = await pipe.replay()
        finally:
            await pipe.stop()
        return report

    try:
        report = asyncio.run(_run())
    except Exception as e:
        logger.error(f"Replay failed: {e}")
        sys.exit(1)

    typer.echo(json.dumps({"replayed": report.delivered, "remaining": report.remaining}, indent=2))


@app.command("spool-stats")
def spool_stats(spool: Optional[str] = spool_opt()):
    """Count spooled logs and unparseable lines."""
    settings = _settings(spool=spool)
    snap = asyncio.run(FailureSpool(settings.failure_spool_path).read())

    poison = 0
    for line in snap.lines:
        try:
            parse_spool_line(line)
        except SpoolParseError:
            poison += 1

    typer.echo(
        json.dumps(
            {"path": settings.failure_spool_path, "lines": len(snap.lines), "poison": poison},
            indent=2,
        )
    )


# ---------------------------
# Ingestion
# ---------------------------


@app.command("ingest")
def ingest(
    path: str = typer.Argument(..., help="NDJSON file of log events"),
    sink_url: Optional[str] = sink_opt(),
    spool: Optional[str] = spool_opt(),
):
    """Push an NDJSON file of events through the pipeline (no session forwarding)."""
    settings = _settings(sink_url, spool)
    counts = asyncio.run(_ingest(settings, path))
    typer.echo(json.dumps(counts, indent=2))


async def _ingest(settings: RelaySettings, path: str) -> dict:
    counts = {"accepted": 0, "queue_full_waits": 0, "invalid": 0}
    async with LogPipeline(settings) as pipe:
        for obj in iter_ndjson(path):
            try:
                event = LogEvent.model_validate(obj)
            except ValidationError as e:
                counts["invalid"] += 1
                logger.warning(f"Skipping invalid log event: {e.errors()[0]['msg']}")
                continue

            # queue full: retry until a worker frees a slot
            while not await pipe.enqueue(event):
                await asyncio.sleep(0.01)
                counts["queue_full_waits"] += 1
            counts["accepted"] += 1
    return counts


if __name__ == "__main__":
    app()
