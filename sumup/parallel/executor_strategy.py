"""
Async execution strategies for chunk requests.

Implements the Strategy Pattern to separate "what to run" from "how many
run at once". Every strategy schedules coroutines as asyncio tasks; the
strategy decides how many may be in flight at the same time.

Usage:
    # Production (bounded concurrency)
    strategy = ConcurrentStrategy(max_in_flight=2)

    # Testing (deterministic, one at a time in submission order)
    strategy = SequentialStrategy()

    task = strategy.submit(summarize_chunk, chunk)
    result = await task
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from sumup.config import MAX_IN_FLIGHT

T = TypeVar('T')
R = TypeVar('R')


class ExecutorStrategy(ABC):
    """
    Abstract strategy for running coroutine functions.

    Attributes:
        max_in_flight: Number of coroutines allowed to run at once.
    """

    max_in_flight: int

    @abstractmethod
    def submit(self, fn: Callable[[T], Awaitable[R]], item: T) -> "asyncio.Task[R]":
        """
        Schedule ``fn(item)`` and return its task.

        Must be called from a running event loop. The coroutine starts only
        once a slot is free.
        """

    @property
    @abstractmethod
    def in_flight(self) -> int:
        """Coroutines currently holding a slot."""


class ConcurrentStrategy(ExecutorStrategy):
    """
    Bounded concurrency using an asyncio.Semaphore.

    Waiting coroutines acquire slots in submission order, so with a bound of
    one this degrades to strictly sequential execution.

    Args:
        max_in_flight: Maximum concurrent coroutines. Defaults to the
                       configured orchestrator limit (2) so the backend's own
                       rate limiting is not tripped.
    """

    def __init__(self, max_in_flight: int | None = None):
        if max_in_flight is None:
            max_in_flight = MAX_IN_FLIGHT
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1, got {max_in_flight}")
        self.max_in_flight = max_in_flight
        self._semaphore: asyncio.Semaphore | None = None
        self._in_flight = 0

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the loop that first uses it
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_in_flight)
        return self._semaphore

    def submit(self, fn: Callable[[T], Awaitable[R]], item: T) -> "asyncio.Task[R]":
        return asyncio.get_running_loop().create_task(self._run_limited(fn, item))

    async def _run_limited(self, fn: Callable[[T], Awaitable[R]], item: T) -> R:
        async with self._get_semaphore():
            self._in_flight += 1
            try:
                return await fn(item)
            finally:
                self._in_flight -= 1

    @property
    def in_flight(self) -> int:
        return self._in_flight


class SequentialStrategy(ConcurrentStrategy):
    """
    One coroutine at a time, in submission order.

    Same interface and semantics as ConcurrentStrategy, which makes tests
    deterministic and easier to debug.
    """

    def __init__(self):
        super().__init__(max_in_flight=1)
