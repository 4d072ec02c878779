"""
Result Types for Summarization

Data structures passed out of the request orchestrator and the pipeline.

Key Types:
    PipelineState - Progress states published to the UI
    ChunkSummary - Result from summarizing one chunk
    SummaryResult - Final (or partial) result of an orchestration run

Usage:
    result = SummaryResult(
        state=PipelineState.COMPLETE,
        summary="The report finds...",
        strategy=ProcessingStrategy.SINGLE,
        requests_made=1,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from sumup.errors import AppError, PipelineError, UnknownError
from sumup.processing_strategy import ProcessingStrategy


class PipelineState(Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    SELECTING = "selecting"
    DISPATCHING = "dispatching"
    IN_FLIGHT = "in_flight"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETE, PipelineState.FAILED)


@dataclass(frozen=True)
class ChunkSummary:
    """
    Result from summarizing one chunk.

    Attributes:
        index: Chunk position in the source text (0-based).
        summary: Summary text ("" on failure).
        success: Whether the chunk produced a summary.
        error: Classified error when success is False.
        attempts: Requests sent for this chunk, retries included.
        section_titles: Titles of the sections the chunk covered.
    """
    index: int
    summary: str = ""
    success: bool = True
    error: AppError | None = None
    attempts: int = 1
    section_titles: tuple[str, ...] = ()


@dataclass
class SummaryResult:
    """
    Result of one orchestration run.

    Attributes:
        state: COMPLETE or FAILED.
        summary: Final summary, or the partial summary from the chunks that succeeded.
        chunk_summaries: Per-chunk results in source order.
        error: Classified error when state is FAILED.
        is_partial: True when summary covers only part of the source.
        requests_made: Successful backend requests (quota actually consumed).
        strategy: Strategy that produced the result.
        processing_time_seconds: Wall-clock time of the run.
    """
    state: PipelineState
    summary: str = ""
    chunk_summaries: list[ChunkSummary] = field(default_factory=list)
    error: AppError | None = None
    is_partial: bool = False
    requests_made: int = 0
    strategy: ProcessingStrategy | None = None
    processing_time_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state == PipelineState.COMPLETE

    @property
    def word_count(self) -> int:
        return len(self.summary.split())

    @property
    def failed_chunks(self) -> list[int]:
        return [c.index for c in self.chunk_summaries if not c.success]

    def raise_for_error(self) -> None:
        """Raise PipelineError for a FAILED result, attaching self when it holds a partial summary."""
        if self.state == PipelineState.FAILED:
            error = self.error if self.error is not None else UnknownError("run failed without an error")
            raise PipelineError(error, partial_result=self if self.is_partial else None)

    def get_chunks_formatted(self) -> str:
        """Per-chunk summaries in source order, failed chunks marked."""
        parts = []
        for chunk in self.chunk_summaries:
            label = f"--- Part {chunk.index + 1} ---"
            if chunk.success:
                parts.append(f"{label}\n{chunk.summary}")
            else:
                reason = chunk.error.message if chunk.error is not None else "failed"
                parts.append(f"{label}\n[Error: {reason}]")
        return "\n\n".join(parts)
