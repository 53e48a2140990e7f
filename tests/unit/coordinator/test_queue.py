"""
Unit tests for BoundedQueue admission.
"""

import asyncio
import pytest

from log_relay.coordinator import BoundedQueue


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BoundedQueue[int](capacity=0)


@pytest.mark.asyncio
async def test_offer_rejects_only_when_full():
    """offer() returns False iff the queue already holds `capacity` items."""
    q = BoundedQueue[int](capacity=1)

    assert q.offer(1) is True
    assert q.size == 1
    assert q.offer(2) is False  # second offer before the first is dequeued
    assert q.size == 1

    assert await q.get() == 1
    assert q.offer(3) is True


@pytest.mark.asyncio
async def test_fifo_order():
    q = BoundedQueue[int](capacity=5)
    for i in range(5):
        assert q.offer(i)
    assert q.full()

    items = [await q.get() for _ in range(5)]
    assert items == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_concurrent_offers_never_exceed_capacity():
    q = BoundedQueue[int](capacity=10)

    async def producer(n):
        await asyncio.sleep(0)
        return q.offer(n)

    results = await asyncio.gather(*(producer(i) for i in range(25)))
    assert results.count(True) == 10
    assert results.count(False) == 15
    assert q.size == 10


@pytest.mark.asyncio
async def test_get_timeout():
    q = BoundedQueue[int](capacity=2)
    with pytest.raises(asyncio.TimeoutError):
        await q.get(timeout=0.01)


@pytest.mark.asyncio
async def test_drain_nowait_empties_queue_and_unblocks_join():
    q = BoundedQueue[int](capacity=3)
    q.offer(1)
    q.offer(2)

    assert q.drain_nowait() == [1, 2]
    assert q.size == 0
    await asyncio.wait_for(q.join(), timeout=0.5)
