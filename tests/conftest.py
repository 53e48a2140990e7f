"""
Pytest configuration and fixtures for the log relay.

Provides cross-platform event loop configuration and relay fixtures.
"""

import asyncio
import sys

import pytest

from log_relay.config import RelaySettings

from .helpers import FakeSink, RecordingForwarder

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def spool_path(tmp_path):
    return tmp_path / "spool" / "failed_logs.ndjson"


@pytest.fixture
def settings(spool_path):
    """Fast settings for tests: tiny backoff, short worker poll."""
    return RelaySettings(
        sink_url="http://loki.test/loki/api/v1/push",
        queue_capacity=100,
        worker_count=2,
        max_retries=3,
        base_delay_ms=1,
        failure_spool_path=str(spool_path),
        worker_poll_sec=0.02,
        forward_timeout_sec=1.0,
        shutdown_timeout_sec=2.0,
    )


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def forwarder():
    return RecordingForwarder()
