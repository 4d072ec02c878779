"""
Section-Aware Document Chunking Engine

Partitions source text into a fixed number of contiguous chunks for
multi-request summarization:
1. Ideal cut points divide the text into equal-length slices
2. Each cut snaps to the nearest section start (or paragraph break) within
   a tolerance window around the ideal point
3. Otherwise the cut falls back to the nearest sentence end

Cuts never land mid-sentence. Text without usable boundaries yields fewer
chunks than requested rather than a broken sentence.
"""

import re
import time
from dataclasses import dataclass

from sumup.analysis.result_types import StructuredData
from sumup.config import PROCESSING_CONFIG
from sumup.logging_config import debug_log, debug_timing, warning

_PARAGRAPH_BREAK = re.compile(r'\n[ \t]*\n\s*')
_SENTENCE_END = re.compile(r'[.!?]+["\')\]]*\s+')

BOUNDARY_MODES = ('section', 'paragraph')


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous slice of the source text sent as one request.

    Attributes:
        index: Position among the document's chunks (0-based, source order).
        text: Chunk text, trimmed of surrounding whitespace.
        start: Offset of the chunk in the source text.
        end: Offset one past the chunk's last character.
        section_titles: Titles of the sections the chunk overlaps.
    """
    index: int
    text: str
    start: int
    end: int
    section_titles: tuple[str, ...] = ()

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class ChunkingEngine:
    """
    Boundary-aware text partitioner.

    Args:
        boundary: 'section' to cut at section starts, 'paragraph' to cut at
                  blank-line paragraph breaks.
        tolerance: Allowed distance from an ideal cut, as a fraction of the
                   ideal chunk length.
    """

    def __init__(self, boundary: str | None = None, tolerance: float | None = None):
        chunking_config = PROCESSING_CONFIG['chunking']
        self.boundary = boundary or chunking_config['boundary']
        if self.boundary not in BOUNDARY_MODES:
            raise ValueError(f"Unknown chunk boundary mode {self.boundary!r}; expected one of {BOUNDARY_MODES}")
        self.tolerance = chunking_config['boundary_tolerance'] if tolerance is None else tolerance

    def partition(self, text: str, structured: StructuredData | None, chunk_count: int) -> list[Chunk]:
        """
        Split text into up to chunk_count chunks in source order.

        Args:
            text: Full source text.
            structured: Analyzer output; supplies section starts and titles.
            chunk_count: Desired number of chunks (>= 1).

        Returns:
            Non-empty chunks, ordered and non-overlapping.
        """
        start_time = time.perf_counter()
        if chunk_count < 1:
            raise ValueError(f"chunk_count must be at least 1, got {chunk_count}")
        if not text.strip():
            return []

        cuts = self._find_cuts(text, structured, chunk_count) if chunk_count > 1 else []
        bounds = [0, *cuts, len(text)]

        chunks = []
        for start, end in zip(bounds, bounds[1:]):
            raw = text[start:end]
            stripped = raw.strip()
            if not stripped:
                continue
            lead = len(raw) - len(raw.lstrip())
            chunk_start = start + lead
            chunk_end = chunk_start + len(stripped)
            chunks.append(Chunk(
                index=len(chunks),
                text=stripped,
                start=chunk_start,
                end=chunk_end,
                section_titles=self._titles_between(structured, chunk_start, chunk_end),
            ))

        if len(chunks) < chunk_count:
            warning(f"[CHUNKING] Requested {chunk_count} chunks, produced {len(chunks)} (not enough boundaries)")
        debug_log(f"[CHUNKING] {len(text)} chars -> {len(chunks)} chunks: {[c.end - c.start for c in chunks]}")
        debug_timing("Chunk partitioning", time.perf_counter() - start_time)
        return chunks

    def _find_cuts(self, text: str, structured: StructuredData | None, chunk_count: int) -> list[int]:
        total = len(text)
        ideal_length = total / chunk_count
        window = ideal_length * self.tolerance

        preferred = self._boundary_positions(text, structured)
        sentence_ends = sorted({m.end() for m in _SENTENCE_END.finditer(text) if 0 < m.end() < total})

        cuts: list[int] = []
        previous = 0
        for k in range(1, chunk_count):
            target = ideal_length * k
            cut = _nearest(preferred, target, previous, total, window)
            if cut is None:
                cut = _nearest(sentence_ends, target, previous, total, None)
            if cut is None:
                break
            cuts.append(cut)
            previous = cut
        return cuts

    def _boundary_positions(self, text: str, structured: StructuredData | None) -> list[int]:
        if self.boundary == 'section' and structured is not None and structured.sections:
            positions = {s.start for s in structured.sections}
        else:
            positions = {m.end() for m in _PARAGRAPH_BREAK.finditer(text)}
        return sorted(p for p in positions if 0 < p < len(text))

    @staticmethod
    def _titles_between(structured: StructuredData | None, start: int, end: int) -> tuple[str, ...]:
        if structured is None:
            return ()
        titles: list[str] = []
        for section in structured.sections:
            if section.start < end and section.end > start and section.title not in titles:
                titles.append(section.title)
        return tuple(titles)


def _nearest(positions: list[int], target: float, previous: int, total: int, window: float | None) -> int | None:
    """Position closest to target, strictly between previous and total, within window if given."""
    best = None
    for position in positions:
        if position <= previous or position >= total:
            continue
        distance = abs(position - target)
        if window is not None and distance > window:
            continue
        if best is None or distance < abs(best - target):
            best = position
    return best
