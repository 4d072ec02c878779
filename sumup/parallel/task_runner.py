"""
Task runner for concurrent chunk requests.

Runs a coroutine function over a list of payloads through an
ExecutorStrategy, with per-task error capture, completion callbacks and
cancellation.

Cancellation semantics:
- No task starts its work after ``cancel()``; tasks still waiting for a
  slot come back with ``skipped=True``.
- Tasks already running are allowed to finish (drain). Their results are
  still reported; the caller decides whether to discard them.

Usage:
    runner = ParallelTaskRunner(
        strategy=ConcurrentStrategy(max_in_flight=2),
        on_task_complete=lambda task_id, result: print(f"{task_id} done"),
    )
    results = await runner.run(summarize_chunk, [("chunk-0", c0), ("chunk-1", c1)])
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sumup.logging_config import debug_log
from sumup.parallel.executor_strategy import ExecutorStrategy


@dataclass
class TaskResult:
    """
    Outcome of one task.

    Attributes:
        task_id: Identifier passed in with the payload.
        success: True if the coroutine returned without raising.
        result: Return value (if success=True).
        error: Exception raised (if success=False and not skipped).
        skipped: True if the task never started because of cancellation.
    """
    task_id: str
    success: bool
    result: Any = None
    error: Exception | None = None
    skipped: bool = False


class ParallelTaskRunner:
    """
    Runs coroutines using a configurable ExecutorStrategy.

    Results are returned in completion order (not submission order); each
    task's failure is captured individually and never aborts the others.

    Args:
        strategy: ExecutorStrategy deciding how many tasks run at once.
        on_task_complete: Optional callback for successful completions.
                          Signature: (task_id: str, result: Any) -> None
    """

    def __init__(
        self,
        strategy: ExecutorStrategy,
        on_task_complete: Callable[[str, Any], None] | None = None,
    ):
        self.strategy = strategy
        self.on_task_complete = on_task_complete
        self._cancel_event = asyncio.Event()

    async def run(
        self,
        fn: Callable[[Any], Awaitable[Any]],
        items: list[tuple[str, Any]],
    ) -> list[TaskResult]:
        """
        Run fn over every payload and wait for all of them.

        Args:
            fn: Coroutine function taking the payload.
            items: (task_id, payload) tuples.

        Returns:
            TaskResult per item, in completion order.
        """
        if not items:
            return []

        async def guarded(entry: tuple[str, Any]) -> TaskResult:
            task_id, payload = entry
            # Checked after the slot is acquired: nothing new starts once cancelled
            if self._cancel_event.is_set():
                return TaskResult(task_id=task_id, success=False, skipped=True)
            try:
                value = await fn(payload)
            except Exception as e:
                return TaskResult(task_id=task_id, success=False, error=e)
            return TaskResult(task_id=task_id, success=True, result=value)

        tasks = [self.strategy.submit(guarded, entry) for entry in items]

        results = []
        for finished in asyncio.as_completed(tasks):
            task_result = await finished
            results.append(task_result)
            if task_result.success and self.on_task_complete:
                self.on_task_complete(task_result.task_id, task_result.result)

        debug_log(
            f"[RUNNER] {len(results)} tasks finished: "
            f"{sum(r.success for r in results)} ok, {sum(r.skipped for r in results)} skipped"
        )
        return results

    def cancel(self) -> None:
        """Stop starting new tasks; running ones drain."""
        self._cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()
