"""
Request Orchestrator - Executes a processing option against the backend

Runs a chosen ProcessingOption:

1. Dispatch: SINGLE sends the whole text; DUAL and MULTI partition it into
   section-aligned chunks (ChunkingEngine)
2. In flight: chunk requests run concurrently, bounded by the executor
   strategy (default 2 in flight). Each request reserves one quota slot
   right before it is sent and gives it back if it permanently fails
3. Aggregate: chunk summaries are joined in source order, whatever order
   they completed in; DUAL adds one consolidation request

Transient failures (network, server, model loading, timeouts) are retried
with exponential backoff, up to the configured number of attempts per
request. Anything else fails the request immediately.

If some chunks fail, the run ends FAILED with the partial summary of the
chunks that succeeded attached; failed chunks are never dropped silently.

Usage:
    orchestrator = RequestOrchestrator(backend, quota_tracker)
    result = await orchestrator.execute(text, option, structured, style="balanced")
    if result.is_partial:
        offer_partial(result.summary, user_message(result.error, partial=True))
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, stop_any, wait_exponential

from sumup.analysis.result_types import StructuredData
from sumup.chunking_engine import Chunk, ChunkingEngine
from sumup.config import (
    REQUEST_TIMEOUT_SECONDS,
    RETRY_ATTEMPTS,
    RETRY_BACKOFF_MAX_SECONDS,
    RETRY_BACKOFF_SECONDS,
)
from sumup.error_classifier import classify_error
from sumup.errors import (
    TRANSIENT_KINDS,
    AppError,
    ErrorKind,
    InvalidInputError,
    PipelineError,
    ServerError,
    UnknownError,
    is_transient,
)
from sumup.logging_config import debug_log, error, info, warning
from sumup.parallel import ConcurrentStrategy, ExecutorStrategy, ParallelTaskRunner, TaskResult
from sumup.processing_strategy import ProcessingOption
from sumup.quota.quota_tracker import QuotaTracker
from sumup.summarization.backend import SummarizationBackend
from sumup.summarization.pipeline_state import PipelineStateStream
from sumup.summarization.result_types import ChunkSummary, PipelineState, SummaryResult

CANCELLED_MESSAGE = "cancelled"


@dataclass
class _RequestOutcome:
    text: str = ""
    error: AppError | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _RunContext:
    """Mutable state of one execute() call."""
    chunk_total: int = 0
    chunks_done: int = 0
    requests_made: int = 0
    cancelled: bool = False
    runner: ParallelTaskRunner | None = None
    started_at: float = field(default_factory=time.perf_counter)


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and is_transient(classify_error(exc))


class RequestOrchestrator:
    """
    Executes processing options against a summarization backend.

    One orchestrator runs one execute() at a time; concurrent runs use
    separate orchestrators sharing a QuotaTracker.

    Args:
        backend: Summarization backend.
        quota: Shared daily quota tracker.
        strategy: Concurrency strategy for chunk requests.
        chunking_engine: Partitions text for DUAL/MULTI.
        state_stream: Receives state transitions (a private one is used if None).
        request_timeout: Per-attempt timeout in seconds.
        retry_attempts: Attempts per request, the first one included.
        backoff_seconds: Exponential backoff multiplier.
        backoff_max_seconds: Upper bound for a single backoff wait.
        progress_span: (start, end) progress fractions this run reports within.
    """

    def __init__(
        self,
        backend: SummarizationBackend,
        quota: QuotaTracker,
        strategy: ExecutorStrategy | None = None,
        chunking_engine: ChunkingEngine | None = None,
        state_stream: PipelineStateStream | None = None,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = RETRY_ATTEMPTS,
        backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        backoff_max_seconds: float = RETRY_BACKOFF_MAX_SECONDS,
        progress_span: tuple[float, float] = (0.0, 1.0),
    ):
        self.backend = backend
        self.quota = quota
        self.strategy = strategy or ConcurrentStrategy()
        self.chunking_engine = chunking_engine or ChunkingEngine()
        self.state_stream = state_stream or PipelineStateStream()
        self.request_timeout = request_timeout
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.progress_span = progress_span
        self._run: _RunContext | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        text: str,
        option: ProcessingOption,
        structured: StructuredData | None = None,
        style: str = "balanced",
    ) -> SummaryResult:
        """
        Run option over text and return the (possibly partial) result.

        Args:
            text: Full source text.
            option: Option chosen from the strategy selector.
            structured: Analyzer output, used for section-aligned chunking.
            style: Persona api style passed to the backend.

        Returns:
            SummaryResult in state COMPLETE, or FAILED with ``error`` set
            (and ``is_partial`` when some chunks succeeded).

        Raises:
            PipelineError(InvalidInputError): text has nothing to summarize.
        """
        run = _RunContext()
        self._run = run
        self._publish(PipelineState.DISPATCHING, 0.0, f"Preparing {option.strategy.value} request")

        chunk_count = 1 if option.chunk_count <= 1 else option.chunk_count
        chunks = self.chunking_engine.partition(text, structured, chunk_count)
        if not chunks:
            self._publish(PipelineState.FAILED, 1.0, "Nothing to summarize")
            raise PipelineError(InvalidInputError("no text to summarize"))

        run.chunk_total = len(chunks)
        info(f"[ORCHESTRATOR] Running {option.strategy.value} with {len(chunks)} chunk(s)")

        runner = ParallelTaskRunner(strategy=self.strategy)
        run.runner = runner
        if run.cancelled:
            runner.cancel()

        async def summarize_chunk(chunk: Chunk) -> ChunkSummary:
            return await self._summarize_chunk(run, chunk, style)

        task_results = await runner.run(summarize_chunk, [(str(chunk.index), chunk) for chunk in chunks])

        if run.cancelled:
            return self._finish_cancelled(run, option)

        self._publish(PipelineState.AGGREGATING, 0.9, "Combining results")
        chunk_summaries = self._ordered_summaries(chunks, task_results)
        return await self._aggregate(run, option, chunk_summaries, style)

    def cancel(self) -> None:
        """
        Cancel the current run.

        No new chunk request is dispatched after this call; requests already
        in flight drain and their results are discarded. The run ends FAILED
        with UnknownError("cancelled").
        """
        run = self._run
        if run is None:
            return
        info("[ORCHESTRATOR] Cancellation requested")
        run.cancelled = True
        if run.runner is not None:
            run.runner.cancel()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _summarize_chunk(self, run: _RunContext, chunk: Chunk, style: str) -> ChunkSummary:
        self._publish(
            PipelineState.IN_FLIGHT,
            0.9 * run.chunks_done / run.chunk_total,
            f"Summarizing part {chunk.index + 1} of {run.chunk_total}",
        )
        outcome = await self._dispatch(run, lambda: self.backend.summarize(chunk.text, style), f"chunk {chunk.index + 1}")
        run.chunks_done += 1
        self._publish(
            PipelineState.IN_FLIGHT,
            0.9 * run.chunks_done / run.chunk_total,
            f"Finished {run.chunks_done} of {run.chunk_total} parts",
        )
        return ChunkSummary(
            index=chunk.index,
            summary=outcome.text,
            success=outcome.ok,
            error=outcome.error,
            attempts=outcome.attempts,
            section_titles=chunk.section_titles,
        )

    async def _dispatch(self, run: _RunContext, call: Callable[[], Awaitable[str]], label: str) -> _RequestOutcome:
        """Reserve a quota slot, send with retries, and release the slot on permanent failure."""
        consumed = await self.quota.try_consume(1)
        if not consumed.ok:
            warning(f"[ORCHESTRATOR] {label}: daily quota exhausted")
            return _RequestOutcome(error=consumed.error)

        attempts = 0

        def log_retry(retry_state):
            exc = retry_state.outcome.exception()
            kind = classify_error(exc).kind.value
            warning(
                f"[ORCHESTRATOR] {label} attempt {retry_state.attempt_number}/{self.retry_attempts} "
                f"failed ({kind}); retrying in {retry_state.next_action.sleep:.1f}s"
            )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_should_retry),
                stop=stop_any(stop_after_attempt(self.retry_attempts), lambda retry_state: run.cancelled),
                wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_max_seconds),
                before_sleep=log_retry,
                reraise=True,
            ):
                with attempt:
                    if run.cancelled:
                        raise PipelineError(UnknownError(CANCELLED_MESSAGE))
                    attempts += 1
                    text = await asyncio.wait_for(call(), timeout=self.request_timeout)
                    if not text or not text.strip():
                        raise PipelineError(ServerError("empty response from backend"))
        except asyncio.CancelledError:
            await self.quota.release(1)
            raise
        except Exception as e:
            if run.cancelled:
                info(f"[ORCHESTRATOR] {label}: no further attempts after cancellation ({attempts} sent)")
                await self.quota.release(1)
                return _RequestOutcome(error=UnknownError(CANCELLED_MESSAGE), attempts=attempts)
            app_error = classify_error(e)
            error(f"[ORCHESTRATOR] {label} failed after {attempts} attempt(s): {app_error.kind.value} {app_error.detail}")
            await self.quota.release(1)
            return _RequestOutcome(error=app_error, attempts=attempts)

        run.requests_made += 1
        debug_log(f"[ORCHESTRATOR] {label} succeeded after {attempts} attempt(s)")
        return _RequestOutcome(text=text.strip(), attempts=attempts)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @staticmethod
    def _ordered_summaries(chunks: list[Chunk], task_results: list[TaskResult]) -> list[ChunkSummary]:
        """Chunk summaries in source order, whatever order they completed in."""
        by_index: dict[int, ChunkSummary] = {}
        for task_result in task_results:
            index = int(task_result.task_id)
            if task_result.success:
                by_index[index] = task_result.result
            else:
                app_error = classify_error(task_result.error) if task_result.error else UnknownError("not dispatched")
                by_index[index] = ChunkSummary(index=index, success=False, error=app_error, attempts=0)

        ordered = []
        for chunk in chunks:
            summary = by_index.get(chunk.index) or ChunkSummary(
                index=chunk.index, success=False, error=UnknownError("missing chunk result"), attempts=0
            )
            ordered.append(summary)
        return ordered

    async def _aggregate(
        self,
        run: _RunContext,
        option: ProcessingOption,
        chunk_summaries: list[ChunkSummary],
        style: str,
    ) -> SummaryResult:
        succeeded = [c for c in chunk_summaries if c.success]
        failed = [c for c in chunk_summaries if not c.success]
        combined = "\n\n".join(c.summary for c in succeeded)

        if failed:
            if succeeded:
                failure = _partial_failure_error(failed, len(chunk_summaries))
                warning(f"[ORCHESTRATOR] {len(failed)} of {len(chunk_summaries)} parts failed; returning partial summary")
            else:
                failure = failed[0].error
            return self._finish(run, option, PipelineState.FAILED, combined, chunk_summaries,
                                error=failure, is_partial=bool(succeeded))

        if option.consolidate and len(chunk_summaries) > 1:
            if run.cancelled:
                return self._finish_cancelled(run, option)
            self._publish(PipelineState.AGGREGATING, 0.95, "Merging parts into one summary")
            outcome = await self._dispatch(run, lambda: self.backend.consolidate(combined, style), "consolidation")
            if run.cancelled:
                return self._finish_cancelled(run, option)
            if not outcome.ok:
                return self._finish(run, option, PipelineState.FAILED, combined, chunk_summaries,
                                    error=outcome.error, is_partial=True)
            return self._finish(run, option, PipelineState.COMPLETE, outcome.text, chunk_summaries)

        return self._finish(run, option, PipelineState.COMPLETE, combined, chunk_summaries)

    def _finish(
        self,
        run: _RunContext,
        option: ProcessingOption,
        state: PipelineState,
        summary: str,
        chunk_summaries: list[ChunkSummary],
        error: AppError | None = None,
        is_partial: bool = False,
    ) -> SummaryResult:
        result = SummaryResult(
            state=state,
            summary=summary,
            chunk_summaries=chunk_summaries,
            error=error,
            is_partial=is_partial,
            requests_made=run.requests_made,
            strategy=option.strategy,
            processing_time_seconds=time.perf_counter() - run.started_at,
        )
        if state == PipelineState.COMPLETE:
            self._publish(state, 1.0, f"Summary ready ({run.requests_made} requests)")
        else:
            self._publish(state, 1.0, error.message if error is not None else "Failed")
        return result

    def _finish_cancelled(self, run: _RunContext, option: ProcessingOption) -> SummaryResult:
        info(f"[ORCHESTRATOR] Run cancelled after {run.requests_made} request(s); results discarded")
        return self._finish(run, option, PipelineState.FAILED, "", [], error=UnknownError(CANCELLED_MESSAGE))

    def _publish(self, state: PipelineState, fraction: float, message: str) -> None:
        start, end = self.progress_span
        self.state_stream.publish(state, start + (end - start) * fraction, message)


def _partial_failure_error(failed: list[ChunkSummary], total: int) -> AppError:
    """
    Error reported alongside a partial summary.

    A terminal, user-actionable failure (quota, API key, input) is reported
    as is; exhausted transient failures become a ServerError.
    """
    for chunk in failed:
        if chunk.error is not None and chunk.error.kind not in TRANSIENT_KINDS and chunk.error.kind != ErrorKind.UNKNOWN:
            return chunk.error
    return ServerError(f"{len(failed)} of {total} parts failed")
