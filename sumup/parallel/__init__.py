"""
Concurrency utilities for the request orchestrator.

Strategy Pattern-based async execution with bounded concurrency,
per-task error capture and drain-on-cancel semantics.

Components:
    ExecutorStrategy - Abstract base class defining the execution interface
    ConcurrentStrategy - Semaphore-bounded concurrent execution (production)
    SequentialStrategy - One task at a time (testing/debugging)
    ParallelTaskRunner - Runs a coroutine over payloads with callbacks and cancel
    TaskResult - Dataclass for task execution results

Testing Example:
    runner = ParallelTaskRunner(strategy=SequentialStrategy())
    results = await runner.run(summarize_chunk, items)
    assert len(results) == len(items)
"""

from sumup.parallel.executor_strategy import (
    ConcurrentStrategy,
    ExecutorStrategy,
    SequentialStrategy,
)
from sumup.parallel.task_runner import ParallelTaskRunner, TaskResult

__all__ = [
    # Strategies
    'ExecutorStrategy',
    'ConcurrentStrategy',
    'SequentialStrategy',
    # Task runner
    'ParallelTaskRunner',
    'TaskResult',
]
