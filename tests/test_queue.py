"""Tests for the keyed work queue and backoff configuration."""

import asyncio

import pytest

from clustermanager.accept.queue import QueueShutdown, RetryConfig, WorkQueue


class TestRetryConfig:
    """Tests for backoff delay calculation."""

    def test_exponential_without_jitter(self):
        config = RetryConfig(min_wait_seconds=1.0, jitter_fraction=0)
        assert [config.calculate_delay(a) for a in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_wait(self):
        config = RetryConfig(min_wait_seconds=1.0, max_wait_seconds=60.0, jitter_fraction=0)
        assert config.calculate_delay(10) == 60.0

    def test_jitter_bounds(self):
        config = RetryConfig(min_wait_seconds=2.0, jitter_fraction=0.5)
        for _ in range(50):
            assert 2.0 <= config.calculate_delay(0) <= 3.0

    def test_should_retry(self):
        config = RetryConfig(max_attempts=2)
        assert config.should_retry(0)
        assert config.should_retry(1)
        assert not config.should_retry(2)


class TestWorkQueue:
    """Tests for queue ordering, coalescing and per-key serialization."""

    @pytest.mark.asyncio
    async def test_fifo(self):
        queue = WorkQueue()
        queue.add("a")
        queue.add("b")
        assert await queue.get() == "a"
        assert await queue.get() == "b"

    @pytest.mark.asyncio
    async def test_coalesces_queued_key(self):
        queue = WorkQueue()
        queue.add("a")
        queue.add("a")
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_key_added_while_processing_waits_for_done(self):
        queue = WorkQueue()
        queue.add("a")
        key = await queue.get()

        queue.add("a")
        assert len(queue) == 0

        queue.done(key)
        assert len(queue) == 1
        assert await queue.get() == "a"

    @pytest.mark.asyncio
    async def test_done_without_readd_does_not_requeue(self):
        queue = WorkQueue()
        queue.add("a")
        queue.done(await queue.get())
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_get_waits_for_add(self):
        queue = WorkQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0)
        assert not getter.done()

        queue.add("a")
        assert await asyncio.wait_for(getter, timeout=1) == "a"

    @pytest.mark.asyncio
    async def test_add_after(self):
        queue = WorkQueue()
        queue.add_after("a", 0.01)
        assert len(queue) == 0
        assert await asyncio.wait_for(queue.get(), timeout=1) == "a"

    @pytest.mark.asyncio
    async def test_rate_limited_drops_after_max_attempts(self):
        queue = WorkQueue(retry=RetryConfig(max_attempts=2, min_wait_seconds=0.001, jitter_fraction=0))
        assert queue.add_rate_limited("a")
        assert queue.add_rate_limited("a")
        assert not queue.add_rate_limited("a")
        assert queue.num_requeues("a") == 0

    @pytest.mark.asyncio
    async def test_forget_resets_backoff(self):
        queue = WorkQueue(retry=RetryConfig(min_wait_seconds=0.001, jitter_fraction=0))
        queue.add_rate_limited("a")
        assert queue.num_requeues("a") == 1
        queue.forget("a")
        assert queue.num_requeues("a") == 0

    @pytest.mark.asyncio
    async def test_shutdown_wakes_getters(self):
        queue = WorkQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0)

        queue.shutdown()

        with pytest.raises(QueueShutdown):
            await asyncio.wait_for(getter, timeout=1)

    @pytest.mark.asyncio
    async def test_shutdown_cancels_delayed_adds(self):
        queue = WorkQueue()
        queue.add_after("a", 0.01)
        queue.shutdown()
        await asyncio.sleep(0.05)
        assert len(queue) == 0
