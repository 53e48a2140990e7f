"""Shared test doubles for the relay tests."""

import asyncio
import json
import time
from typing import Callable, List, Optional

import httpx

from log_relay.coordinator import SubmitResult
from log_relay.models import LogEvent


class FakeSink:
    """Loki stand-in: records accepted pushes, fails on demand."""

    def __init__(
        self,
        fail_first_n: int = 0,
        always_fail: bool = False,
        fail_when: Optional[Callable[[dict], bool]] = None,
    ):
        self._fail = fail_first_n
        self._always_fail = always_fail
        self._fail_when = fail_when
        self.attempts = 0
        self.payloads: List[dict] = []
        self.headers: List[httpx.Headers] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.attempts += 1
        body = json.loads(request.content)
        if self._always_fail or (self._fail_when and self._fail_when(body)):
            return httpx.Response(503, text="unavailable")
        if self._fail > 0:
            self._fail -= 1
            return httpx.Response(500, text="transient")
        self.payloads.append(body)
        self.headers.append(request.headers)
        return httpx.Response(204)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def messages(self) -> List[str]:
        return [p["streams"][0]["values"][0][1] for p in self.payloads]


class RecordingForwarder:
    """Submission service stand-in recording every bundle."""

    def __init__(self, success: bool = True, raises: Optional[Exception] = None):
        self.success = success
        self.raises = raises
        self.calls: List[tuple] = []

    async def submit(self, producer_id: str, session_id: str, logs_json: str) -> SubmitResult:
        self.calls.append((producer_id, session_id, json.loads(logs_json)))
        if self.raises is not None:
            raise self.raises
        return SubmitResult(success=self.success, message="ok" if self.success else "rejected")


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until true or fail the test."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def make_event(producer_id: str = "robot-1", **kw) -> LogEvent:
    kw.setdefault("message", "hello")
    kw.setdefault("timestamp", 1_700_000_000_000)
    return LogEvent(producer_id=producer_id, **kw)


