"""
Summarization Package

Request orchestration against the summarization backend, the end-to-end
pipeline facade and the state stream the UI renders progress from.

Key Components:
    RequestOrchestrator - Runs a ProcessingOption with retries, quota and ordered aggregation
    SummarizationPipeline - Extraction -> analysis -> selection -> orchestration
    PipelineStateStream - Ordered fan-out of pipeline state transitions
    SummarizationBackend / OllamaBackend - Backend contract and REST implementation
    SummaryResult / ChunkSummary - Result types
"""

from sumup.summarization.backend import OllamaBackend, SummarizationBackend, SummaryPersona
from sumup.summarization.pipeline import SummarizationPipeline, choose_recommended
from sumup.summarization.pipeline_state import PipelineStateStream, StateUpdate
from sumup.summarization.request_orchestrator import RequestOrchestrator
from sumup.summarization.result_types import ChunkSummary, PipelineState, SummaryResult

__all__ = [
    'ChunkSummary',
    'OllamaBackend',
    'PipelineState',
    'PipelineStateStream',
    'RequestOrchestrator',
    'StateUpdate',
    'SummarizationBackend',
    'SummarizationPipeline',
    'SummaryPersona',
    'SummaryResult',
    'choose_recommended',
]
