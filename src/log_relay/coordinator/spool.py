"""
Failure spool (file-based NDJSON).

Holds events whose delivery retries were exhausted, one JSON LogEvent per
line. Replay reads a snapshot and rewrites the file with what is left.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger

from ..errors import SpoolWriteError
from ..metrics import metrics_registry
from ..models import LogEvent
from ..utils import is_json


@dataclass(frozen=True)
class SpoolSnapshot:
    """Spool lines as read, plus the byte offset the read stopped at."""

    lines: List[str] = field(default_factory=list)
    offset: int = 0


class FailureSpool:
    """Append-only NDJSON store of undeliverable events.

    The file is created lazily on first append. A missing file reads as empty.
    File I/O runs in a worker thread; one asyncio lock serializes access.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def append(self, event: LogEvent) -> None:
        """Append one event; raises ``SpoolWriteError`` if it cannot be recorded."""
        try:
            line = event.to_json_line() + "\n"
        except ValueError as e:
            # e.g. lone surrogates in the message cannot be encoded
            raise SpoolWriteError(str(self.path), e) from e
        async with self._lock:
            try:
                await asyncio.to_thread(self._append_sync, line)
            except OSError as e:
                raise SpoolWriteError(str(self.path), e) from e
        metrics_registry.spool_appends_total.inc()
        logger.debug(f"Spooled failed log for robot {event.producer_id} -> {self.path}")

    async def append_lines(self, lines: Iterable[str]) -> None:
        """Append raw lines verbatim (used for quarantine files)."""
        data = "".join(line + "\n" for line in lines)
        if not data:
            return
        async with self._lock:
            try:
                await asyncio.to_thread(self._append_sync, data)
            except OSError as e:
                raise SpoolWriteError(str(self.path), e) from e

    async def read(self) -> SpoolSnapshot:
        async with self._lock:
            return await asyncio.to_thread(self._read_sync)

    async def replace_with(self, lines: Iterable[str], preserve_from: Optional[int] = None) -> None:
        """Atomically rewrite the spool with ``lines``.

        If ``preserve_from`` is given, bytes appended after that offset (by
        workers while a replay was running) are carried over after ``lines``.
        """
        lines = list(lines)
        async with self._lock:
            await asyncio.to_thread(self._replace_sync, lines, preserve_from)

    async def count(self) -> int:
        snap = await self.read()
        return len(snap.lines)

    # ---------- sync helpers (run in thread) ----------

    def _append_sync(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            self._terminate_tail()
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def _terminate_tail(self) -> None:
        """Make the next append start on a fresh line.

        An unterminated last line that is valid JSON gets its newline; anything
        else is a torn write from a crash and is cut off.
        """
        with open(self.path, "r+b") as f:
            size = f.seek(0, os.SEEK_END)
            if size == 0:
                return
            f.seek(size - 1)
            if f.read(1) == b"\n":
                return

            f.seek(0)
            data = f.read()
            start = data.rfind(b"\n") + 1
            tail = data[start:].decode("utf-8", errors="surrogateescape")
            if is_json(tail):
                f.seek(size)
                f.write(b"\n")
            else:
                logger.warning(
                    f"Truncating torn trailing line in spool {self.path} ({len(tail)} bytes)"
                )
                f.truncate(start)

    def _read_sync(self) -> SpoolSnapshot:
        if not self.path.exists():
            return SpoolSnapshot()

        raw = self.path.read_bytes()
        text = raw.decode("utf-8", errors="surrogateescape")
        lines = text.split("\n")
        tail = lines.pop()  # "" when the file ends with a newline

        if tail:
            if is_json(tail):
                lines.append(tail)
            else:
                logger.warning(
                    f"Dropping torn trailing line in spool {self.path} ({len(tail)} bytes)"
                )
        # blank lines are kept: they round-trip as unparseable residue
        return SpoolSnapshot(lines=lines, offset=len(raw))

    def _replace_sync(self, lines: List[str], preserve_from: Optional[int]) -> None:
        tail = b""
        if preserve_from is not None and self.path.exists():
            with open(self.path, "rb") as f:
                f.seek(preserve_from)
                tail = f.read()

        body = "".join(line + "\n" for line in lines).encode("utf-8", errors="surrogateescape")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(body)
                f.write(tail)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
