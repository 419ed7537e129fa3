"""Tests for DispatchQueue and SequentialDispatchQueue."""

import asyncio

import pytest

from relay.dispatch import DispatchQueue, SequentialDispatchQueue


class TestSequentialDispatchQueueOrder:
    """Tests for FIFO, one-at-a-time execution."""

    async def test_tasks_run_in_arrival_order_without_overlap(self):
        """Test that N tasks added at once run strictly in order, one at a time."""
        queue = SequentialDispatchQueue("test")
        events = []
        running = 0
        max_running = 0

        def make_task(i):
            async def task():
                nonlocal running, max_running
                running += 1
                max_running = max(max_running, running)
                events.append(("start", i))
                await asyncio.sleep(0.001 * (5 - i % 5))
                events.append(("end", i))
                running -= 1
                return i

            return task

        futures = [queue.add(make_task(i)) for i in range(10)]
        results = await asyncio.gather(*futures)

        assert results == list(range(10))
        assert max_running == 1
        expected = []
        for i in range(10):
            expected += [("start", i), ("end", i)]
        assert events == expected

    async def test_concurrent_adders_keep_call_order(self):
        """Test that tasks added from several coroutines run in add() order."""
        queue = SequentialDispatchQueue("test")
        order = []
        added = []

        async def submitter(i):
            await asyncio.sleep(0.001 * (i % 3))
            added.append(i)

            async def task():
                order.append(i)

            await queue.add(task)

        await asyncio.gather(*(submitter(i) for i in range(9)))

        assert order == added

    async def test_next_task_starts_after_previous_settles(self):
        """Test that a task does not start while the previous one is running."""
        queue = SequentialDispatchQueue("test")
        release = asyncio.Event()
        started = []

        async def first():
            started.append("first")
            await release.wait()

        async def second():
            started.append("second")

        f1 = queue.add(first)
        f2 = queue.add(second)
        await asyncio.sleep(0.01)

        assert started == ["first"]
        assert queue.waiting == 1
        assert queue.unsettled == 2

        release.set()
        await asyncio.gather(f1, f2)
        assert started == ["first", "second"]
        assert queue.unsettled == 0


class TestSequentialDispatchQueueErrors:
    """Tests for failing tasks."""

    async def test_failure_settles_only_its_future(self):
        """Test that an exception fails its future and later tasks still run."""
        queue = SequentialDispatchQueue("test")

        async def boom():
            raise ValueError("boom")

        async def ok():
            return "ok"

        failed = queue.add(boom)
        succeeded = queue.add(ok)

        with pytest.raises(ValueError, match="boom"):
            await failed
        assert await succeeded == "ok"

    async def test_task_runs_after_caller_stops_waiting(self):
        """Test that a cancelled waiter does not skip the queued task."""
        queue = SequentialDispatchQueue("test")
        release = asyncio.Event()
        ran = []

        async def blocker():
            await release.wait()

        async def later():
            ran.append("later")

        queue.add(blocker)
        abandoned = queue.add(later)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(abandoned, timeout=0.01)

        release.set()
        await queue.join()
        assert ran == ["later"]

    async def test_queue_restarts_after_draining(self):
        """Test that tasks added after the queue went idle still run."""
        queue = SequentialDispatchQueue("test")

        async def value(v):
            return v

        assert await queue.add(lambda: value(1)) == 1
        await asyncio.sleep(0.01)
        assert await queue.add(lambda: value(2)) == 2


class TestDispatchQueueConcurrency:
    """Tests for the bounded fan-out queue."""

    async def test_respects_max_concurrency(self):
        """Test that no more than max_concurrency tasks run at once."""
        queue = DispatchQueue("updates", max_concurrency=3)
        running = 0
        max_running = 0

        async def task():
            nonlocal running, max_running
            running += 1
            max_running = max(max_running, running)
            await asyncio.sleep(0.01)
            running -= 1

        for _ in range(10):
            queue.add(task)
        await queue.join()

        assert max_running == 3

    async def test_invalid_concurrency(self):
        """Test that a concurrency below one is rejected."""
        with pytest.raises(ValueError):
            DispatchQueue("bad", max_concurrency=0)

    async def test_close_cancels_waiting_tasks(self):
        """Test that close() cancels tasks that never started."""
        queue = SequentialDispatchQueue("test")
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def never():
            return "never"

        running = queue.add(blocker)
        waiting = queue.add(never)
        await asyncio.sleep(0.01)

        await queue.close()

        assert waiting.cancelled()
        assert running.cancelled()
