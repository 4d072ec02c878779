"""
Summarization Pipeline - End-to-end document to summary

Wires the stages together and publishes every transition on one
PipelineStateStream:

    EXTRACTING -> ANALYZING -> SELECTING -> DISPATCHING -> IN_FLIGHT
        -> AGGREGATING -> COMPLETE | FAILED

Usage:
    pipeline = SummarizationPipeline(OllamaBackend(), quota_tracker)
    result = await pipeline.run(Document.from_path("report.pdf"), SummaryPersona.BUSINESS)
    if not result.success:
        print(user_message(result.error, partial=result.is_partial))
"""

from __future__ import annotations

from typing import Callable

from sumup.analysis import AnalysisResult, StructuralAnalyzer
from sumup.drafts import DraftInputType, DraftManager
from sumup.error_classifier import classify_error
from sumup.errors import AppError, ExtractionFailedError, PipelineError, UnknownError
from sumup.extraction import Document, ExtractionAdapter, ExtractionResult, SourceKind
from sumup.logging_config import Timer, info
from sumup.parallel import ExecutorStrategy
from sumup.processing_strategy import ProcessingOption, ProcessingStrategySelector
from sumup.quota.quota_tracker import QuotaTracker
from sumup.summarization.backend import SummarizationBackend, SummaryPersona
from sumup.summarization.pipeline_state import PipelineStateStream
from sumup.summarization.request_orchestrator import CANCELLED_MESSAGE, RequestOrchestrator
from sumup.summarization.result_types import PipelineState, SummaryResult

OptionChooser = Callable[[list[ProcessingOption]], ProcessingOption]

# Share of the progress bar reserved for extraction, analysis and selection
PREPARATION_SPAN = 0.3


def choose_recommended(options: list[ProcessingOption]) -> ProcessingOption:
    for option in options:
        if option.is_recommended:
            return option
    return options[0]


class SummarizationPipeline:
    """
    Document -> extraction -> analysis -> strategy -> orchestrated summary.

    Args:
        backend: Summarization backend.
        quota: Shared daily quota tracker.
        extraction_adapter: Text extraction (a fresh adapter if None).
        analyzer: Structural analyzer (default heuristics if None).
        selector: Strategy selector (configured thresholds if None).
        strategy: Concurrency strategy for chunk requests.
        state_stream: Where state transitions are published.
        drafts: When given, the TEXT draft is cleared after a successful
                summarize_text() run.
    """

    def __init__(
        self,
        backend: SummarizationBackend,
        quota: QuotaTracker,
        extraction_adapter: ExtractionAdapter | None = None,
        analyzer: StructuralAnalyzer | None = None,
        selector: ProcessingStrategySelector | None = None,
        strategy: ExecutorStrategy | None = None,
        state_stream: PipelineStateStream | None = None,
        drafts: DraftManager | None = None,
        **orchestrator_options,
    ):
        self.quota = quota
        self.extraction_adapter = extraction_adapter or ExtractionAdapter()
        self.analyzer = analyzer or StructuralAnalyzer()
        self.selector = selector or ProcessingStrategySelector()
        self.state_stream = state_stream or PipelineStateStream()
        self.drafts = drafts
        self.orchestrator = RequestOrchestrator(
            backend,
            quota,
            strategy=strategy,
            state_stream=self.state_stream,
            progress_span=(PREPARATION_SPAN, 1.0),
            **orchestrator_options,
        )
        self.last_analysis: AnalysisResult | None = None
        self.last_options: list[ProcessingOption] = []
        self.last_text_length = 0
        self._cancel_requested = False

    async def run(
        self,
        document: Document,
        persona: SummaryPersona = SummaryPersona.GENERAL,
        choose: OptionChooser | None = None,
    ) -> SummaryResult:
        """
        Summarize a document end to end.

        Args:
            document: Document to summarize.
            persona: Summary style.
            choose: Picks one of the offered options (recommended by default).

        Returns:
            SummaryResult; FAILED results carry the classified error.
        """
        self._cancel_requested = False
        self.state_stream.publish(PipelineState.EXTRACTING, 0.0, "Reading document")

        with Timer(f"Extraction of {document.document_id}", auto_log=False) as timer:
            extraction = await self.extraction_adapter.extract(document)

        if not extraction.success:
            ocr = extraction.ocr_path or document.source_kind == SourceKind.IMAGE_SCAN
            failure = classify_error(ExtractionFailedError(extraction.error_message or "extraction failed", ocr=ocr))
            return self._fail(failure)

        return await self._summarize_extracted(extraction, persona, choose, timer.duration_seconds)

    async def summarize_text(
        self,
        text: str,
        persona: SummaryPersona = SummaryPersona.GENERAL,
        choose: OptionChooser | None = None,
    ) -> SummaryResult:
        """Summarize typed or pasted text (no extraction step)."""
        self._cancel_requested = False
        extraction = ExtractionResult(success=True, text=text, confidence=1.0, method='direct_read')
        result = await self._summarize_extracted(extraction, persona, choose, 0.0)
        if result.success and self.drafts is not None:
            await self.drafts.clear(DraftInputType.TEXT)
        return result

    def cancel(self) -> None:
        """Cancel the current run; see RequestOrchestrator.cancel for in-flight requests."""
        self._cancel_requested = True
        self.orchestrator.cancel()

    async def _summarize_extracted(
        self,
        extraction: ExtractionResult,
        persona: SummaryPersona,
        choose: OptionChooser | None,
        extraction_time: float,
    ) -> SummaryResult:
        if self._cancel_requested:
            return self._fail(UnknownError(CANCELLED_MESSAGE))

        self.state_stream.publish(PipelineState.ANALYZING, 0.1, "Analyzing structure")
        try:
            analysis = self.analyzer.analyze(extraction, extraction_time=extraction_time)
        except PipelineError as e:
            return self._fail(e.error)
        self.last_analysis = analysis

        self.state_stream.publish(PipelineState.SELECTING, 0.2, "Choosing processing strategy")
        try:
            status = await self.quota.status()
        except Exception as e:
            return self._fail(classify_error(e))
        self.last_text_length = len(extraction.text)
        options = self.selector.select(self.last_text_length, analysis.structured, status)
        self.last_options = options
        option = (choose or choose_recommended)(options)
        info(
            f"[PIPELINE] {len(extraction.text)} chars, {len(analysis.structured.sections)} sections -> "
            f"{option.strategy.value}{' (quota-constrained)' if option.quota_constrained else ''}"
        )

        if self._cancel_requested:
            return self._fail(UnknownError(CANCELLED_MESSAGE))

        try:
            return await self.orchestrator.execute(
                extraction.text, option, analysis.structured, style=persona.api_style
            )
        except PipelineError as e:
            return SummaryResult(state=PipelineState.FAILED, error=e.error, strategy=option.strategy)

    def _fail(self, failure: AppError) -> SummaryResult:
        self.state_stream.publish(PipelineState.FAILED, 1.0, failure.message)
        return SummaryResult(state=PipelineState.FAILED, error=failure)
