"""
Pipeline state stream.

Publishes every pipeline state transition, with a progress fraction and a
short message, to any number of async subscribers. Subscribers see every
transition in order; a subscription ends after the first terminal state
(COMPLETE or FAILED).

Usage:
    stream = PipelineStateStream()
    updates = stream.subscribe()          # registers immediately

    asyncio.create_task(pipeline.run(document))
    async for update in updates:
        render(update.state, update.progress, update.message)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sumup.logging_config import debug_log
from sumup.summarization.result_types import PipelineState


@dataclass(frozen=True)
class StateUpdate:
    state: PipelineState
    progress: float = 0.0
    message: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StateSubscription:
    """Async iterator over updates, ending after a terminal state."""

    def __init__(self, stream: PipelineStateStream):
        self._stream = stream
        self._queue: asyncio.Queue[StateUpdate] = asyncio.Queue()
        self._finished = False

    def _push(self, update: StateUpdate) -> None:
        self._queue.put_nowait(update)

    def __aiter__(self):
        return self

    async def __anext__(self) -> StateUpdate:
        if self._finished:
            raise StopAsyncIteration
        update = await self._queue.get()
        if update.state.is_terminal:
            self._finished = True
            self._stream.unsubscribe(self)
        return update

    def close(self) -> None:
        self._finished = True
        self._stream.unsubscribe(self)


class PipelineStateStream:
    """Fan-out of pipeline state transitions."""

    def __init__(self):
        self._subscriptions: list[StateSubscription] = []
        self.history: list[StateUpdate] = []
        self.current = StateUpdate(PipelineState.IDLE)

    def subscribe(self) -> StateSubscription:
        subscription = StateSubscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: StateSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, state: PipelineState, progress: float = 0.0, message: str = "") -> StateUpdate:
        """Record a transition and deliver it to every subscriber. Never suspends."""
        update = StateUpdate(state=state, progress=min(1.0, max(0.0, progress)), message=message)
        self.current = update
        self.history.append(update)
        debug_log(f"[PIPELINE] {state.value} ({update.progress:.0%}) {message}")
        for subscription in list(self._subscriptions):
            subscription._push(update)
        return update

    @property
    def states(self) -> list[PipelineState]:
        return [update.state for update in self.history]
