"""
Tests for the request orchestrator: ordering, retries, quota accounting,
partial failure, consolidation and cancellation.

Backoff is zero throughout so retries do not slow the suite down.
"""

import asyncio
import random

import pytest
from fakes import MARKERS, FakeBackend, make_document

from sumup.analysis import StructuralAnalyzer
from sumup.errors import (
    BackendHTTPError,
    InvalidApiKeyError,
    InvalidInputError,
    NetworkError,
    PipelineError,
    RateLimitError,
    ServerError,
    UnknownError,
)
from sumup.parallel import ConcurrentStrategy, SequentialStrategy
from sumup.processing_strategy import ProcessingStrategy, ProcessingStrategySelector
from sumup.quota import QuotaTracker
from sumup.summarization import PipelineState, PipelineStateStream, RequestOrchestrator
from sumup.summarization.request_orchestrator import CANCELLED_MESSAGE


def multi_option(text, chunks):
    return ProcessingStrategySelector().build_option(ProcessingStrategy.MULTI, len(text), chunk_count=chunks)


def make_orchestrator(backend, quota, **kwargs):
    kwargs.setdefault('backoff_seconds', 0)
    kwargs.setdefault('strategy', ConcurrentStrategy(max_in_flight=2))
    return RequestOrchestrator(backend, quota, **kwargs)


class TestSingleRequest:

    @pytest.mark.asyncio
    async def test_single_request_completes(self, backend, quota):
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))

        result = await make_orchestrator(backend, quota).execute(text, option, style="educational")

        assert result.state == PipelineState.COMPLETE
        assert result.summary == "SUMMARY[Alpha]"
        assert result.requests_made == 1
        assert result.strategy == ProcessingStrategy.SINGLE
        assert backend.calls == [(text, "educational")]
        assert (await quota.status()).requests_used == 1

    @pytest.mark.asyncio
    async def test_blank_text_raises_invalid_input(self, backend, quota):
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, 0)
        with pytest.raises(PipelineError) as exc_info:
            await make_orchestrator(backend, quota).execute("   ", option)
        assert isinstance(exc_info.value.error, InvalidInputError)
        assert backend.calls == []


class TestChunkOrdering:
    """Aggregated output follows source order, whatever order chunks complete in."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 2, 3])
    async def test_random_completion_order(self, quota, seed):
        rng = random.Random(seed)
        delays = {marker: rng.uniform(0, 0.03) for marker in MARKERS[:4]}
        backend = FakeBackend(delay=lambda text: delays[text.split()[0]])
        text = make_document(MARKERS[:4])
        structured = StructuralAnalyzer().analyze_text(text)

        result = await make_orchestrator(backend, quota, strategy=ConcurrentStrategy(max_in_flight=4)).execute(
            text, multi_option(text, 4), structured
        )

        assert result.state == PipelineState.COMPLETE
        assert result.summary == "\n\n".join(f"SUMMARY[{m}]" for m in MARKERS[:4])
        assert [c.index for c in result.chunk_summaries] == [0, 1, 2, 3]
        assert result.requests_made == 4

    @pytest.mark.asyncio
    async def test_formatted_chunks(self, backend, quota):
        text = make_document(MARKERS[:2])
        result = await make_orchestrator(backend, quota).execute(text, multi_option(text, 2))
        assert result.get_chunks_formatted() == "--- Part 1 ---\nSUMMARY[Alpha]\n\n--- Part 2 ---\nSUMMARY[Bravo]"


class TestRetries:
    """Transient failures are retried, others are not."""

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, quota):
        backend = FakeBackend(fail_marker="Alpha", fail_times=2)
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))

        result = await make_orchestrator(backend, quota).execute(text, option)

        assert result.state == PipelineState.COMPLETE
        assert len(backend.calls) == 3
        assert result.chunk_summaries[0].attempts == 3
        assert (await quota.status()).requests_used == 1

    @pytest.mark.asyncio
    async def test_non_transient_failure_not_retried(self, quota):
        backend = FakeBackend(fail_marker="Alpha", failure=lambda: BackendHTTPError(401, "bad key"))
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))

        result = await make_orchestrator(backend, quota).execute(text, option)

        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, InvalidApiKeyError)
        assert not result.is_partial
        assert len(backend.calls) == 1
        assert (await quota.status()).requests_used == 0

    @pytest.mark.asyncio
    async def test_timeout_is_retried_as_network_error(self, quota):
        backend = FakeBackend(delay=lambda text: 1.0)
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))

        result = await make_orchestrator(backend, quota, request_timeout=0.02).execute(text, option)

        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, NetworkError)
        assert len(backend.calls) == 3
        assert (await quota.status()).requests_used == 0

    @pytest.mark.asyncio
    async def test_empty_response_is_retried(self, quota):
        class BlankOnce(FakeBackend):
            async def summarize(self, text, style):
                self.calls.append((text, style))
                return "   " if len(self.calls) == 1 else "SUMMARY"

        backend = BlankOnce()
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))

        result = await make_orchestrator(backend, quota).execute(text, option)

        assert result.summary == "SUMMARY"
        assert len(backend.calls) == 2


class TestPartialFailure:
    """Failed chunks are reported, never dropped."""

    @pytest.mark.asyncio
    async def test_one_chunk_fails_persistently(self, quota):
        """Three chunks, the second always 500s: partial summary of 1 and 3, ServerError, 2 requests consumed."""
        backend = FakeBackend(fail_marker="Bravo")
        text = make_document(MARKERS[:3])
        structured = StructuralAnalyzer().analyze_text(text)

        result = await make_orchestrator(backend, quota).execute(text, multi_option(text, 3), structured)

        assert result.state == PipelineState.FAILED
        assert result.is_partial
        assert isinstance(result.error, ServerError)
        assert result.summary == "SUMMARY[Alpha]\n\nSUMMARY[Delta]"
        assert result.failed_chunks == [1]
        assert result.chunk_summaries[1].attempts == 3
        assert len(backend.calls_containing("Bravo")) == 3
        assert result.requests_made == 2
        assert (await quota.status()).requests_used == 2

    @pytest.mark.asyncio
    async def test_raise_for_error_carries_partial(self, quota):
        backend = FakeBackend(fail_marker="Bravo")
        text = make_document(MARKERS[:3])
        result = await make_orchestrator(backend, quota).execute(text, multi_option(text, 3))

        with pytest.raises(PipelineError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.partial_result is result

    @pytest.mark.asyncio
    async def test_all_chunks_fail(self, quota):
        backend = FakeBackend(fail_marker="sentence")
        text = make_document(MARKERS[:2])

        result = await make_orchestrator(backend, quota).execute(text, multi_option(text, 2))

        assert result.state == PipelineState.FAILED
        assert not result.is_partial
        assert result.summary == ""
        assert isinstance(result.error, ServerError)

    @pytest.mark.asyncio
    async def test_quota_exhausted_mid_run(self, memory_store, clock):
        """Chunks beyond the cap fail with RateLimitError and never exceed the cap."""
        quota = QuotaTracker(memory_store, daily_cap=2, clock=clock)
        backend = FakeBackend()
        text = make_document(MARKERS[:4])

        result = await make_orchestrator(backend, quota, strategy=SequentialStrategy()).execute(
            text, multi_option(text, 4)
        )

        assert result.is_partial
        assert isinstance(result.error, RateLimitError)
        assert len(backend.calls) == 2
        assert (await quota.status()).requests_used == 2


class TestConsolidation:
    """DUAL runs merge their chunks with one extra request."""

    def dual_option(self, text):
        return ProcessingStrategySelector().build_option(ProcessingStrategy.DUAL, len(text))

    @pytest.mark.asyncio
    async def test_dual_consolidates(self, backend, quota):
        text = make_document(MARKERS[:2])

        result = await make_orchestrator(backend, quota).execute(text, self.dual_option(text))

        assert result.state == PipelineState.COMPLETE
        assert result.summary == "CONSOLIDATED"
        assert backend.consolidations == ["SUMMARY[Alpha]\n\nSUMMARY[Bravo]"]
        assert result.requests_made == 3
        assert (await quota.status()).requests_used == 3

    @pytest.mark.asyncio
    async def test_consolidation_failure_returns_chunks(self, quota):
        backend = FakeBackend(fail_consolidation=True)
        text = make_document(MARKERS[:2])

        result = await make_orchestrator(backend, quota).execute(text, self.dual_option(text))

        assert result.state == PipelineState.FAILED
        assert result.is_partial
        assert result.summary == "SUMMARY[Alpha]\n\nSUMMARY[Bravo]"
        assert isinstance(result.error, ServerError)
        assert (await quota.status()).requests_used == 2


class TestQuotaSharing:

    @pytest.mark.asyncio
    async def test_concurrent_runs_never_exceed_cap(self, memory_store, clock):
        """Two runs of four chunks sharing a cap of 5 consume at most 5 requests."""
        quota = QuotaTracker(memory_store, daily_cap=5, clock=clock)
        text = make_document(MARKERS[:4])
        first = make_orchestrator(FakeBackend(delay=lambda t: 0.005), quota)
        second = make_orchestrator(FakeBackend(delay=lambda t: 0.005), quota)

        results = await asyncio.gather(
            first.execute(text, multi_option(text, 4)),
            second.execute(text, multi_option(text, 4)),
        )

        used = (await quota.status()).requests_used
        assert used == 5
        assert sum(r.requests_made for r in results) == used


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_discards_results(self, quota):
        """Cancelling mid-run: in-flight request drains, queued chunks never start."""
        backend = FakeBackend(delay=lambda text: 0.05)
        text = make_document(MARKERS[:4])
        stream = PipelineStateStream()
        orchestrator = make_orchestrator(backend, quota, strategy=SequentialStrategy(), state_stream=stream)

        run = asyncio.create_task(orchestrator.execute(text, multi_option(text, 4)))
        while not backend.calls:
            await asyncio.sleep(0)
        orchestrator.cancel()
        result = await run

        assert result.state == PipelineState.FAILED
        assert result.error == UnknownError(CANCELLED_MESSAGE)
        assert result.summary == ""
        assert len(backend.calls) == 1
        assert (await quota.status()).requests_used == 1
        assert stream.states[-1] == PipelineState.FAILED

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retries(self, quota):
        """A chunk waiting to retry sends no further attempts once the run is cancelled."""
        backend = FakeBackend(fail_marker="Alpha")
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))
        orchestrator = make_orchestrator(backend, quota, backoff_seconds=0.05)

        run = asyncio.create_task(orchestrator.execute(text, option))
        while not backend.calls:
            await asyncio.sleep(0)
        orchestrator.cancel()
        result = await run

        assert len(backend.calls) == 1
        assert result.error == UnknownError(CANCELLED_MESSAGE)
        assert (await quota.status()).requests_used == 0

    @pytest.mark.asyncio
    async def test_failing_in_flight_request_is_not_retried_after_cancel(self, quota):
        """The request on the wire drains; its failure is not retried."""
        backend = FakeBackend(fail_marker="Alpha", delay=lambda text: 0.03)
        text = make_document(MARKERS[:1])
        option = ProcessingStrategySelector().build_option(ProcessingStrategy.SINGLE, len(text))
        orchestrator = make_orchestrator(backend, quota)

        run = asyncio.create_task(orchestrator.execute(text, option))
        while not backend.calls:
            await asyncio.sleep(0)
        orchestrator.cancel()
        result = await run

        assert len(backend.calls) == 1
        assert result.state == PipelineState.FAILED
        assert result.error == UnknownError(CANCELLED_MESSAGE)
        assert (await quota.status()).requests_used == 0

    def test_cancel_without_run_is_noop(self, backend, quota):
        make_orchestrator(backend, quota).cancel()


class TestStatePublishing:

    @pytest.mark.asyncio
    async def test_state_sequence(self, backend, quota):
        stream = PipelineStateStream()
        text = make_document(MARKERS[:2])

        await make_orchestrator(backend, quota, state_stream=stream).execute(text, multi_option(text, 2))

        states = stream.states
        assert states[0] == PipelineState.DISPATCHING
        assert PipelineState.IN_FLIGHT in states
        assert states[-2:] == [PipelineState.AGGREGATING, PipelineState.COMPLETE]
        progress = [update.progress for update in stream.history]
        assert progress == sorted(progress)
        assert progress[-1] == 1.0
