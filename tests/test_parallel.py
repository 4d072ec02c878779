"""
Tests for the async execution strategies and the task runner.
"""

import asyncio

import pytest

from sumup.parallel import ConcurrentStrategy, ParallelTaskRunner, SequentialStrategy, TaskResult


class Tracker:
    """Records how many coroutines run at once."""

    def __init__(self, delay=0.01):
        self.delay = delay
        self.current = 0
        self.peak = 0
        self.started = []

    async def work(self, item):
        self.started.append(item)
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await asyncio.sleep(self.delay)
            return item * 2
        finally:
            self.current -= 1


class TestConcurrentStrategy:
    """Bounded concurrency."""

    @pytest.mark.asyncio
    async def test_never_exceeds_max_in_flight(self):
        tracker = Tracker()
        strategy = ConcurrentStrategy(max_in_flight=2)

        results = await asyncio.gather(*(strategy.submit(tracker.work, i) for i in range(8)))

        assert results == [i * 2 for i in range(8)]
        assert tracker.peak == 2
        assert strategy.in_flight == 0

    @pytest.mark.asyncio
    async def test_default_limit_from_config(self):
        assert ConcurrentStrategy().max_in_flight == 2

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            ConcurrentStrategy(max_in_flight=0)


class TestSequentialStrategy:

    @pytest.mark.asyncio
    async def test_runs_one_at_a_time_in_order(self):
        tracker = Tracker()
        strategy = SequentialStrategy()

        await asyncio.gather(*(strategy.submit(tracker.work, i) for i in range(5)))

        assert tracker.peak == 1
        assert tracker.started == [0, 1, 2, 3, 4]


class TestParallelTaskRunner:
    """Error capture, callbacks and cancellation."""

    @pytest.mark.asyncio
    async def test_results_for_every_item(self):
        runner = ParallelTaskRunner(strategy=ConcurrentStrategy(max_in_flight=3))

        results = await runner.run(Tracker().work, [(f"t{i}", i) for i in range(6)])

        assert sorted(r.task_id for r in results) == [f"t{i}" for i in range(6)]
        assert all(isinstance(r, TaskResult) and r.success for r in results)
        assert {r.task_id: r.result for r in results}["t5"] == 10

    @pytest.mark.asyncio
    async def test_failure_is_captured_per_task(self):
        """One failing task does not abort the others."""
        async def work(item):
            if item == 2:
                raise RuntimeError("chunk 2 exploded")
            return item

        runner = ParallelTaskRunner(strategy=ConcurrentStrategy(max_in_flight=2))
        results = {r.task_id: r for r in await runner.run(work, [(str(i), i) for i in range(4)])}

        assert not results["2"].success
        assert isinstance(results["2"].error, RuntimeError)
        assert all(results[key].success for key in ("0", "1", "3"))

    @pytest.mark.asyncio
    async def test_results_in_completion_order(self):
        delays = {"slow": 0.05, "fast": 0.0}

        async def work(name):
            await asyncio.sleep(delays[name])
            return name

        runner = ParallelTaskRunner(strategy=ConcurrentStrategy(max_in_flight=2))
        results = await runner.run(work, [("slow", "slow"), ("fast", "fast")])

        assert [r.task_id for r in results] == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_completion_callback(self):
        completed = []
        runner = ParallelTaskRunner(
            strategy=SequentialStrategy(),
            on_task_complete=lambda task_id, result: completed.append((task_id, result)),
        )

        await runner.run(Tracker(delay=0).work, [("a", 1), ("b", 2)])

        assert completed == [("a", 2), ("b", 4)]

    @pytest.mark.asyncio
    async def test_cancel_skips_waiting_tasks_and_drains_running(self):
        """After cancel(), the running task finishes and queued tasks never start."""
        tracker = Tracker(delay=0.05)
        runner = ParallelTaskRunner(strategy=SequentialStrategy())

        run = asyncio.create_task(runner.run(tracker.work, [(str(i), i) for i in range(4)]))
        while not tracker.started:
            await asyncio.sleep(0)
        runner.cancel()
        results = {r.task_id: r for r in await run}

        assert runner.is_cancelled
        assert tracker.started == [0]
        assert results["0"].success
        assert all(results[str(i)].skipped for i in (1, 2, 3))

    @pytest.mark.asyncio
    async def test_empty_items(self):
        runner = ParallelTaskRunner(strategy=SequentialStrategy())
        assert await runner.run(Tracker().work, []) == []
