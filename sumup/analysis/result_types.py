"""
Result Types for Structural Analysis

Immutable outputs of the StructuralAnalyzer. Everything is built from
tuples and frozen dataclasses so two analyses of the same text compare
equal.

Key Types:
    StructuredData - Sections, tables, key points and document metadata
    ProcessingMetrics - Timing and quality scores for one pipeline run
    AnalysisResult - Both of the above, returned together
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DocumentType(Enum):
    NARRATIVE = "narrative"
    TECHNICAL = "technical"
    TABULAR = "tabular"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class ReadingLevel(Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SectionType(Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    TABLE = "table"


@dataclass(frozen=True)
class Section:
    """
    A contiguous region of the source text.

    Attributes:
        title: Heading text, or the first words of the block for untitled sections.
        section_type: Block classification.
        start: Offset of the first character in the source text.
        end: Offset one past the last character.
    """
    title: str
    section_type: SectionType
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Table:
    """Table-like region: character span plus row and column counts."""
    start: int
    end: int
    row_count: int
    column_count: int


@dataclass(frozen=True)
class StructuredData:
    """
    Structure derived from extracted text.

    Invariant: ``sections`` are non-overlapping and ordered by ``start``.
    """
    document_type: DocumentType = DocumentType.UNKNOWN
    reading_level: ReadingLevel = ReadingLevel.INTERMEDIATE
    language: str = "und"
    sections: tuple[Section, ...] = ()
    tables: tuple[Table, ...] = ()
    key_points: tuple[str, ...] = ()

    @property
    def section_starts(self) -> list[int]:
        return [section.start for section in self.sections]

    @property
    def headings(self) -> list[Section]:
        return [s for s in self.sections if s.section_type == SectionType.HEADING]


@dataclass(frozen=True)
class ProcessingMetrics:
    """
    Attributes:
        extraction_time: Seconds spent extracting text (supplied by the caller).
        analysis_time: Seconds spent in structural analysis.
        text_quality: Heuristic readability of the extracted text, in [0, 1].
        structure_complexity: How much structure was found, in [0, 1].
    """
    extraction_time: float = 0.0
    analysis_time: float = 0.0
    text_quality: float = 0.0
    structure_complexity: float = 0.0

    def __post_init__(self):
        for name in ('extraction_time', 'analysis_time'):
            if getattr(self, name) < 0:
                object.__setattr__(self, name, 0.0)
        for name in ('text_quality', 'structure_complexity'):
            object.__setattr__(self, name, min(1.0, max(0.0, getattr(self, name))))


@dataclass(frozen=True)
class AnalysisResult:
    structured: StructuredData
    metrics: ProcessingMetrics = field(default_factory=ProcessingMetrics)
