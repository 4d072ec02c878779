"""
Processing Strategy Selection

Decides how a document's text is sent to the summarization backend:
- SINGLE: one request for the whole text (up to 30,000 chars)
- DUAL: two chunks plus one consolidation request (up to 100,000 chars)
- MULTI: four to six chunk requests, concatenated in source order

A length exactly on a bracket boundary belongs to the cheaper bracket.
SINGLE is always offered, DUAL above 20,000 chars and MULTI above 10,000
chars; the bracket's own option is the recommended one.
Selection is deterministic and reads the quota snapshot it is given; it
never mutates shared state.

Usage:
    selector = ProcessingStrategySelector()
    options = selector.select(len(text), structured, await quota.status())
    chosen = next(o for o in options if o.is_recommended)
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum

from sumup.analysis.result_types import StructuredData
from sumup.config import PROCESSING_CONFIG
from sumup.logging_config import debug_log, info
from sumup.quota.quota_tracker import RateLimitStatus


class ProcessingStrategy(Enum):
    SINGLE = "single"
    DUAL = "dual"
    MULTI = "multi"


@dataclass(frozen=True)
class ProcessingOption:
    """
    One way to process a document, with its request footprint.

    Attributes:
        strategy: SINGLE, DUAL or MULTI.
        title: Short label for display.
        description: One-sentence explanation.
        estimated_requests: Upper bound of requests used (quota arithmetic).
        min_requests: Lower bound of requests used.
        chunk_count: Number of chunk requests (1 for SINGLE).
        consolidate: Whether a final consolidation request follows the chunks.
        benefits: Human-readable advantages.
        drawbacks: Human-readable disadvantages.
        is_recommended: Exactly one offered option is recommended.
        quota_constrained: True when offered despite not fitting the quota.
    """
    strategy: ProcessingStrategy
    title: str
    description: str
    estimated_requests: int
    min_requests: int
    chunk_count: int
    consolidate: bool = False
    benefits: tuple[str, ...] = field(default_factory=tuple)
    drawbacks: tuple[str, ...] = field(default_factory=tuple)
    is_recommended: bool = False
    quota_constrained: bool = False


class ProcessingStrategySelector:
    """
    Maps text length and quota status to the processing options offered.

    Thresholds come from config/processing_config.yaml (``strategy`` section).
    """

    def __init__(self, strategy_config: dict | None = None):
        config = strategy_config or PROCESSING_CONFIG['strategy']
        self.single_max_chars = config['single_max_chars']
        self.dual_max_chars = config['dual_max_chars']
        self.multi_chunk_chars = config['multi_chunk_chars']
        self.multi_min_chunks = config['multi_min_chunks']
        self.multi_max_chunks = config['multi_max_chunks']
        self.dual_chunks = config['dual_chunks']
        self.dual_offer_min_chars = config.get('dual_offer_min_chars', 20_000)
        self.multi_offer_min_chars = config.get('multi_offer_min_chars', 10_000)
        self.dual_offer_min_chars = config.get('dual_offer_min_chars', 20_000)
        self.multi_offer_min_chars = config.get('multi_offer_min_chars', 10_000)

    def strategy_for_length(self, text_length: int) -> ProcessingStrategy:
        """Bracket for a length; boundaries fall in the lower bracket."""
        if text_length <= self.single_max_chars:
            return ProcessingStrategy.SINGLE
        if text_length <= self.dual_max_chars:
            return ProcessingStrategy.DUAL
        return ProcessingStrategy.MULTI

    def multi_chunk_count(self, text_length: int) -> int:
        wanted = math.ceil(text_length / self.multi_chunk_chars)
        return max(self.multi_min_chunks, min(self.multi_max_chunks, wanted))

    def build_option(
        self,
        strategy: ProcessingStrategy,
        text_length: int,
        structured: StructuredData | None = None,
        chunk_count: int | None = None,
    ) -> ProcessingOption:
        """
        Build the option for a strategy without any quota check.

        Args:
            strategy: Strategy to describe.
            text_length: Source length in characters.
            structured: Analyzer output, used to mention section-aligned chunks.
            chunk_count: Override the MULTI chunk count (ignored otherwise).
        """
        sectioned = structured is not None and len(structured.sections) > 1
        boundary_note = "Chunks follow the document's sections" if sectioned else "Chunks end on sentence boundaries"

        if strategy == ProcessingStrategy.SINGLE:
            return ProcessingOption(
                strategy=strategy,
                title="Quick summary",
                description="Summarize the whole text in one request.",
                estimated_requests=1,
                min_requests=1,
                chunk_count=1,
                benefits=("Uses a single request", "Fastest result", "Summary sees the whole text at once"),
                drawbacks=(
                    ("Long text may be truncated by the model's context window",)
                    if text_length > self.single_max_chars else ()
                ),
            )

        if strategy == ProcessingStrategy.DUAL:
            return ProcessingOption(
                strategy=strategy,
                title="Two-part summary",
                description=f"Summarize {self.dual_chunks} halves separately, then merge them into one summary.",
                estimated_requests=self.dual_chunks + 1,
                min_requests=self.dual_chunks,
                chunk_count=self.dual_chunks,
                consolidate=True,
                benefits=("Covers the full text", "Consolidation removes repetition between parts", boundary_note),
                drawbacks=(f"Uses up to {self.dual_chunks + 1} requests", "Slower than a quick summary"),
            )

        count = chunk_count if chunk_count is not None else self.multi_chunk_count(text_length)
        return ProcessingOption(
            strategy=strategy,
            title="Detailed summary",
            description=f"Summarize {count} sections separately and combine them in document order.",
            estimated_requests=count,
            min_requests=count,
            chunk_count=count,
            benefits=("Handles very long documents", "Keeps detail from every part", boundary_note),
            drawbacks=(f"Uses {count} requests", "Longest processing time", "Parts are not merged into one voice"),
        )

    def offered_strategies(self, text_length: int) -> list[ProcessingStrategy]:
        """Strategies worth offering for a length, cheapest first; SINGLE is always offered."""
        strategies = [ProcessingStrategy.SINGLE]
        if text_length > self.dual_offer_min_chars:
            strategies.append(ProcessingStrategy.DUAL)
        if text_length > self.multi_offer_min_chars:
            strategies.append(ProcessingStrategy.MULTI)
        return strategies

    def select(
        self,
        text_length: int,
        structured: StructuredData | None,
        status: RateLimitStatus,
    ) -> list[ProcessingOption]:
        """
        Options offered for a document of text_length characters.

        Every offered strategy whose estimate fits the remaining quota is
        returned. The bracket's option is recommended. If it does not fit,
        the most thorough option that does is recommended instead and marked
        quota-constrained. If nothing fits, only a quota-constrained SINGLE
        option is returned.
        """
        if text_length < 0:
            raise ValueError(f"text_length must be non-negative, got {text_length}")

        bracket = self.strategy_for_length(text_length)
        candidates = [
            self.build_option(strategy, text_length, structured)
            for strategy in self.offered_strategies(text_length)
        ]
        affordable = [o for o in candidates if status.can_afford(o.estimated_requests)]
        bracket_option = next(o for o in candidates if o.strategy == bracket)

        if bracket_option in affordable:
            debug_log(
                f"[SELECTOR] {text_length} chars -> {bracket.value} "
                f"({bracket_option.estimated_requests} requests, {status.requests_used}/{status.daily_cap} used, "
                f"{len(affordable)} option(s) offered)"
            )
            return [replace(o, is_recommended=o is bracket_option) for o in affordable]

        if not affordable:
            affordable = [candidates[0]]
        stand_in = max(affordable, key=lambda o: o.estimated_requests)
        info(
            f"[SELECTOR] {bracket.value} needs {bracket_option.estimated_requests} requests but only "
            f"{status.remaining} remain; recommending quota-constrained {stand_in.strategy.value}"
        )
        return [
            replace(
                o,
                is_recommended=True,
                quota_constrained=True,
                drawbacks=o.drawbacks + ("Daily quota is too low for the full strategy",),
            ) if o is stand_in else o
            for o in affordable
        ]
