"""Tests for the deduplicating work queue."""

import asyncio

from snapshot_operator.factory import ExponentialRateLimiter, WorkQueue


async def test_add_coalesces_pending_keys() -> None:
    """Test that a key waiting in the queue is only queued once."""
    queue: WorkQueue[str] = WorkQueue("test")
    queue.add("a")
    queue.add("b")
    queue.add("a")
    assert len(queue) == 2

    assert await queue.get() == "a"
    assert await queue.get() == "b"
    assert len(queue) == 0


async def test_key_added_while_processing_runs_once_more() -> None:
    """Test that a key added during its processing is requeued after done."""
    queue: WorkQueue[str] = WorkQueue("test")
    queue.add("a")
    key = await queue.get()
    assert key == "a"

    queue.add("a")
    queue.add("a")
    # Not handed out again while in flight
    assert len(queue) == 0

    queue.done("a")
    assert len(queue) == 1
    assert await queue.get() == "a"
    queue.done("a")
    assert len(queue) == 0


async def test_get_waits_for_add() -> None:
    """Test that get blocks until a key is added."""
    queue: WorkQueue[str] = WorkQueue("test")
    getter = asyncio.create_task(queue.get())
    await asyncio.sleep(0)
    assert not getter.done()

    queue.add("a")
    assert await asyncio.wait_for(getter, timeout=1) == "a"


async def test_shutdown_wakes_consumers() -> None:
    """Test that shutdown releases every waiting consumer."""
    queue: WorkQueue[str] = WorkQueue("test")
    getters = [asyncio.create_task(queue.get()) for _ in range(3)]
    await asyncio.sleep(0)

    queue.shutdown()
    assert queue.shutting_down
    assert await asyncio.wait_for(asyncio.gather(*getters), timeout=1) == [
        None,
        None,
        None,
    ]

    queue.add("a")
    assert len(queue) == 0


async def test_shutdown_drops_waiting_keys() -> None:
    """Test that keys waiting at shutdown are not handed out."""
    queue: WorkQueue[str] = WorkQueue("test")
    queue.add("a")
    queue.add("b")

    queue.shutdown()
    assert await asyncio.wait_for(queue.get(), timeout=1) is None


async def test_add_after() -> None:
    """Test that a delayed key is added once the delay has passed."""
    queue: WorkQueue[str] = WorkQueue("test")
    queue.add_after("a", 0.01)
    queue.add_after("a", 10)
    assert len(queue) == 0

    assert await asyncio.wait_for(queue.get(), timeout=1) == "a"


async def test_add_rate_limited() -> None:
    """Test that failures are counted until the key is forgotten."""
    queue: WorkQueue[str] = WorkQueue(
        "test", ExponentialRateLimiter(base_delay=0.001, max_delay=0.01)
    )
    queue.add_rate_limited("a")
    assert queue.num_requeues("a") == 1
    assert await asyncio.wait_for(queue.get(), timeout=1) == "a"
    queue.done("a")

    queue.add_rate_limited("a")
    assert queue.num_requeues("a") == 2
    queue.forget("a")
    assert queue.num_requeues("a") == 0
    queue.shutdown()


def test_exponential_rate_limiter() -> None:
    """Test the backoff doubles up to the maximum delay."""
    limiter: ExponentialRateLimiter[str] = ExponentialRateLimiter(
        base_delay=1, max_delay=5
    )
    assert [limiter.when("a") for _ in range(5)] == [1, 2, 4, 5, 5]
    assert limiter.when("b") == 1
    limiter.forget("a")
    assert limiter.when("a") == 1
