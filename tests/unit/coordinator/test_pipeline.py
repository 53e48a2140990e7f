"""
Unit tests for LogPipeline (admission, sessions, shutdown, replay).
"""

import asyncio

import pytest

from log_relay.coordinator import LogPipeline
from log_relay.errors import AdmissionRejected
from log_relay.models import LogEvent

from ...helpers import FakeSink, RecordingForwarder, make_event, wait_until

pytestmark = pytest.mark.timeout(10)


@pytest.mark.asyncio
async def test_capacity_one_rejects_second_enqueue(settings, sink):
    settings = settings.model_copy(update={"queue_capacity": 1})
    pipe = LogPipeline(settings, http_client=sink.client())  # workers not started

    assert await pipe.enqueue(make_event(message="first")) is True
    assert await pipe.enqueue(make_event(message="second")) is False
    with pytest.raises(AdmissionRejected):
        await pipe.enqueue_or_raise(make_event(message="third"))

    h = pipe.health()
    assert (h.queue_size, h.capacity, h.workers_alive) == (1, 1, 0)
    await pipe.stop()


@pytest.mark.asyncio
async def test_rejected_events_are_not_aggregated(settings, sink, forwarder):
    settings = settings.model_copy(update={"queue_capacity": 1})
    pipe = LogPipeline(settings, forwarder=forwarder, http_client=sink.client())

    assert await pipe.enqueue(make_event("P", tag="plain")) is True
    assert await pipe.enqueue(make_event("P", tag="submission", message="x")) is False

    assert pipe.sessions.buffered("P") == []
    await pipe.stop()


@pytest.mark.asyncio
async def test_end_to_end_delivery_and_session_forwarding(settings, sink, forwarder):
    async with LogPipeline(settings, forwarder=forwarder, http_client=sink.client()) as pipe:
        assert pipe.health().workers_alive == 2
        await pipe.enqueue(make_event("P", tag="submission", message="a"))
        await pipe.enqueue(make_event("P", tag="info", message="noise"))
        await pipe.enqueue(make_event("P", tag="submission", message="b"))
        await pipe.enqueue(make_event("P", tag="submission_end", session_id="S", message="end"))
        await wait_until(lambda: len(sink.payloads) == 4)

    # every event also went to the sink individually
    assert sorted(sink.messages) == ["a", "b", "end", "noise"]
    assert len(forwarder.calls) == 1
    producer, session, bundle = forwarder.calls[0]
    assert (producer, session) == ("P", "S")
    assert [e["message"] for e in bundle] == ["a", "b"]


@pytest.mark.asyncio
async def test_forwarder_failure_does_not_affect_admission(settings, sink):
    fwd = RecordingForwarder(raises=RuntimeError("grpc unavailable"))
    async with LogPipeline(settings, forwarder=fwd, http_client=sink.client()) as pipe:
        await pipe.enqueue(make_event("P", tag="submission"))
        accepted = await pipe.enqueue(make_event("P", tag="submission_end", session_id="S"))
        assert accepted is True
        assert pipe.health().open_sessions == 0


@pytest.mark.asyncio
async def test_missing_timestamp_is_stamped_at_ingestion(settings, sink):
    async with LogPipeline(settings, http_client=sink.client()) as pipe:
        await pipe.enqueue(LogEvent(producer_id="r1", message="no ts"))
        await pipe.enqueue(LogEvent(producer_id="r1", message="has ts", timestamp=42))
        await wait_until(lambda: len(sink.payloads) == 2)

    stamps = {p["streams"][0]["values"][0][1]: p["streams"][0]["values"][0][0] for p in sink.payloads}
    assert stamps["has ts"] == "42000000"
    assert int(stamps["no ts"]) > 1_600_000_000_000 * 1_000_000


@pytest.mark.asyncio
async def test_failed_deliveries_are_spooled_then_replayed(settings, spool_path):
    failing = FakeSink(always_fail=True)
    async with LogPipeline(settings, http_client=failing.client()) as pipe:
        for i in range(3):
            await pipe.enqueue(make_event(f"r{i}", message=f"m{i}"))
        await wait_until(lambda: spool_path.exists() and len(spool_path.read_text().splitlines()) == 3)

    healthy = FakeSink()
    pipe = LogPipeline(settings, http_client=healthy.client())
    assert await pipe.replay_all() == 3
    assert sorted(healthy.messages) == ["m0", "m1", "m2"]
    assert spool_path.read_text() == ""
    await pipe.stop()


@pytest.mark.asyncio
async def test_stop_spools_queued_events(settings, spool_path, sink):
    pipe = LogPipeline(settings, http_client=sink.client())
    for i in range(5):
        await pipe.enqueue(make_event(message=f"m{i}"))

    await pipe.stop()

    lines = spool_path.read_text().splitlines()
    assert sorted(LogEvent.from_json_line(ln).message for ln in lines) == [f"m{i}" for i in range(5)]
    assert sink.attempts == 0


@pytest.mark.asyncio
async def test_graceful_drain_delivers_before_stop(settings, spool_path, sink):
    pipe = LogPipeline(settings, http_client=sink.client())
    await pipe.start()
    for i in range(30):
        await pipe.enqueue(make_event(message=f"m{i}"))

    await pipe.stop(drain=True, timeout=2.0)

    assert len(sink.payloads) == 30
    assert not spool_path.exists()


@pytest.mark.asyncio
async def test_enqueue_after_stop_is_rejected(settings, sink):
    pipe = LogPipeline(settings, http_client=sink.client())
    await pipe.start()
    await pipe.stop()

    assert await pipe.enqueue(make_event()) is False


@pytest.mark.asyncio
async def test_no_forwarder_disables_sessions(settings, sink):
    async with LogPipeline(settings, http_client=sink.client()) as pipe:
        assert pipe.sessions is None
        assert await pipe.enqueue(make_event(tag="submission_end", session_id="S")) is True
        await asyncio.sleep(0)
        assert pipe.health().open_sessions == 0


@pytest.mark.asyncio
async def test_start_after_stop_raises(settings, sink):
    pipe = LogPipeline(settings, http_client=sink.client())
    await pipe.start()
    await pipe.stop()

    with pytest.raises(RuntimeError):
        await pipe.start()
    assert pipe.health().workers_alive == 0
