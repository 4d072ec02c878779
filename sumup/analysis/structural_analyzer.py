"""
Structural Analyzer

Derives sections, tables, key points and document metadata from extracted
text. Analysis is a pure function of its input: no I/O, no caching, and two
calls on the same ExtractionResult return equal StructuredData.

Segmentation:
- Blocks are separated by blank lines.
- A short line with no terminal punctuation that is upper case, title
  case, "#"-prefixed or numbered ("2.1 Scope") is a heading. A heading on
  the first line of a block becomes its own section.
- A block whose lines all belong to one aligned table run is a TABLE
  section; a block of bullet/numbered lines is a LIST section; anything
  else is a PARAGRAPH.

Tables are runs of two or more consecutive lines that split into the same
number (>= 2) of cells on "|", tabs, or runs of 2+ spaces.

Key points are the highest-scoring sentences by position and keyword
density, returned in source order.
"""

import re
from collections import Counter

from sumup.analysis.classifiers import UNCLASSIFIED, DocumentClassifier, HeuristicClassifier
from sumup.analysis.result_types import (
    AnalysisResult,
    DocumentType,
    ProcessingMetrics,
    Section,
    SectionType,
    StructuredData,
    Table,
)
from sumup.config import MAX_KEY_POINTS, MIN_TEXT_CHARS
from sumup.errors import InvalidInputError, PipelineError, TextTooShortError
from sumup.extraction.result_types import ExtractionResult
from sumup.logging_config import Timer, debug_log, warning

_BLOCK_SEPARATOR = re.compile(r'\n[ \t]*\n\s*')
_LIST_ITEM = re.compile(r'^\s*(?:[-*•▪◦‣]|\d{1,3}[.)]|[a-zA-Z][.)])\s+\S')
_LIST_MARKER = re.compile(r'^\s*(?:[-*•▪◦‣]|\d{1,3}[.)]|[a-zA-Z][.)])\s+')
_LINE = re.compile(r'[^\n]+')
_NUMBERED_HEADING = re.compile(r'^(?:\d{1,3}(?:\.\d{1,3})*\.?|[IVXLC]{1,6}\.)\s+\S')
_MARKDOWN_HEADING = re.compile(r'^#{1,6}\s+(\S.*)$')
_MULTI_SPACE = re.compile(r' {2,}')
_SENTENCE = re.compile(r'[^.!?]+(?:[.!?]+|$)')
_WORD = re.compile(r"[^\W\d_]+")
_WHITESPACE = re.compile(r'\s+')

HEADING_MAX_CHARS = 80
HEADING_MAX_WORDS = 10
TITLE_WORDS = 8

KEY_POINT_MIN_WORDS = 5
KEY_POINT_MAX_WORDS = 60
POSITION_WEIGHT = 0.4
DENSITY_WEIGHT = 0.4
LEAD_SENTENCE_BONUS = 0.2

_KEYWORD_STOPWORDS = frozenset({
    'about', 'after', 'also', 'because', 'been', 'before', 'being', 'between', 'both', 'could',
    'does', 'each', 'from', 'have', 'here', 'into', 'just', 'like', 'more', 'most', 'much',
    'only', 'other', 'over', 'same', 'should', 'some', 'such', 'than', 'that', 'their', 'them',
    'then', 'there', 'these', 'they', 'this', 'those', 'through', 'under', 'very', 'were',
    'what', 'when', 'where', 'which', 'while', 'will', 'with', 'would', 'your',
})

# Contribution of each document type to structure complexity
_TYPE_COMPLEXITY = {
    DocumentType.UNKNOWN: 0.0,
    DocumentType.NARRATIVE: 0.25,
    DocumentType.TECHNICAL: 0.5,
    DocumentType.TABULAR: 0.75,
    DocumentType.MIXED: 1.0,
}


class StructuralAnalyzer:
    """
    Turns an ExtractionResult into StructuredData and ProcessingMetrics.

    Args:
        classifier: Document type / reading level / language estimator.
        min_text_chars: Shorter (non-blank) text raises TextTooShortError.
        max_key_points: Upper bound on extracted key points.
    """

    def __init__(
        self,
        classifier: DocumentClassifier | None = None,
        min_text_chars: int = MIN_TEXT_CHARS,
        max_key_points: int = MAX_KEY_POINTS,
    ):
        self.classifier = classifier or HeuristicClassifier()
        self.min_text_chars = min_text_chars
        self.max_key_points = max_key_points

    def analyze(self, extraction: ExtractionResult, extraction_time: float = 0.0) -> AnalysisResult:
        """
        Analyze extracted text.

        Args:
            extraction: Output of the extraction adapter.
            extraction_time: Seconds the extraction took, copied into the metrics.

        Raises:
            PipelineError(InvalidInputError): extraction failed or text is blank.
            PipelineError(TextTooShortError): text is below the minimum length.
        """
        if not extraction.success:
            raise PipelineError(InvalidInputError(extraction.error_message or "extraction failed"))
        text = extraction.text
        if not text or not text.strip():
            raise PipelineError(InvalidInputError("text is blank"))
        if len(text.strip()) < self.min_text_chars:
            raise PipelineError(TextTooShortError(f"{len(text.strip())} characters, minimum {self.min_text_chars}"))

        with Timer("Structural analysis", auto_log=False) as timer:
            structured = self.analyze_text(text)
            quality = text_quality(text)
            complexity = structure_complexity(structured)

        debug_log(
            f"[ANALYZER] {len(structured.sections)} sections, {len(structured.tables)} tables, "
            f"{len(structured.key_points)} key points, type={structured.document_type.value}, "
            f"level={structured.reading_level.value}, lang={structured.language} "
            f"({timer.duration_ms:.0f} ms)"
        )
        metrics = ProcessingMetrics(
            extraction_time=extraction_time,
            analysis_time=timer.duration_seconds,
            text_quality=quality,
            structure_complexity=complexity,
        )
        return AnalysisResult(structured=structured, metrics=metrics)

    def analyze_text(self, text: str) -> StructuredData:
        """Structure for non-empty text; never raises for structural reasons."""
        try:
            tables = tuple(find_tables(text))
            sections = tuple(self._segment(text, tables))
        except Exception as e:
            # Structural absence is not an error: fall back to one untitled section
            warning(f"[ANALYZER] Segmentation failed, using a single section: {e}")
            return StructuredData(sections=(_whole_text_section(text),))

        try:
            classification = self.classifier.classify(text, sections, tables)
        except Exception as e:
            warning(f"[ANALYZER] Classifier {type(self.classifier).__name__} failed: {e}")
            classification = UNCLASSIFIED

        return StructuredData(
            document_type=classification.document_type,
            reading_level=classification.reading_level,
            language=classification.language,
            sections=sections,
            tables=tables,
            key_points=tuple(self._key_points(text, sections)),
        )

    # ------------------------------------------------------------------
    # Segmentation
    # ------------------------------------------------------------------

    def _segment(self, text: str, tables: tuple[Table, ...]) -> list[Section]:
        table_spans = {(t.start, t.end) for t in tables}
        sections: list[Section] = []
        current_heading: str | None = None

        for start, end in _blocks(text):
            block = text[start:end]
            first_line, _, rest = block.partition('\n')

            heading = _heading_title(first_line)
            if heading is not None:
                heading_end = start + len(first_line.rstrip())
                sections.append(Section(heading, SectionType.HEADING, start, heading_end))
                current_heading = heading
                if not rest.strip():
                    continue
                start = start + len(first_line) + 1
                start += len(text[start:end]) - len(text[start:end].lstrip())
                block = text[start:end]

            section_type = _block_type(block, (start, end) in table_spans)
            title = current_heading or _leading_words(block)
            sections.append(Section(title, section_type, start, end))

        if not sections:
            sections.append(_whole_text_section(text))
        return sections

    # ------------------------------------------------------------------
    # Key points
    # ------------------------------------------------------------------

    def _key_points(self, text: str, sections: tuple[Section, ...]) -> list[str]:
        candidates: list[tuple[int, str, bool]] = []
        for section in sections:
            if section.section_type not in (SectionType.PARAGRAPH, SectionType.LIST):
                continue
            body = text[section.start:section.end]
            if section.section_type == SectionType.LIST:
                # One candidate per item
                pieces = [(m.start(), _LIST_MARKER.sub('', m.group(0))) for m in _LINE.finditer(body)]
            else:
                pieces = [(m.start(), m.group(0)) for m in _SENTENCE.finditer(body)]
            for i, (offset, piece) in enumerate(pieces):
                sentence = _WHITESPACE.sub(' ', piece).strip()
                word_count = len(sentence.split())
                if KEY_POINT_MIN_WORDS <= word_count <= KEY_POINT_MAX_WORDS:
                    candidates.append((section.start + offset, sentence, i == 0))

        if not candidates or self.max_key_points <= 0:
            return []

        frequencies = Counter(word for _, sentence, _ in candidates for word in _keywords(sentence))
        top_frequency = max(frequencies.values(), default=1)

        scored = []
        for index, (offset, sentence, is_lead) in enumerate(candidates):
            position_score = 1.0 - index / len(candidates)
            keywords = _keywords(sentence)
            density = (sum(frequencies[w] for w in keywords) / len(keywords) / top_frequency) if keywords else 0.0
            score = POSITION_WEIGHT * position_score + DENSITY_WEIGHT * density
            if is_lead:
                score += LEAD_SENTENCE_BONUS
            scored.append((score, offset, sentence))

        # Highest score first, earliest offset on ties
        best = sorted(scored, key=lambda item: (-item[0], item[1]))[:self.max_key_points]
        seen = set()
        key_points = []
        for _, _, sentence in sorted(best, key=lambda item: item[1]):
            if sentence not in seen:
                seen.add(sentence)
                key_points.append(sentence)
        return key_points


# =============================================================================
# Helpers (module level so tests can exercise them directly)
# =============================================================================

def _blocks(text: str) -> list[tuple[int, int]]:
    """Spans of blank-line-separated blocks, trimmed of surrounding whitespace."""
    spans = []
    position = 0
    for separator in _BLOCK_SEPARATOR.finditer(text):
        _append_trimmed(text, position, separator.start(), spans)
        position = separator.end()
    _append_trimmed(text, position, len(text), spans)
    return spans


def _append_trimmed(text: str, start: int, end: int, spans: list[tuple[int, int]]) -> None:
    chunk = text[start:end]
    stripped = chunk.strip()
    if not stripped:
        return
    lead = len(chunk) - len(chunk.lstrip())
    spans.append((start + lead, start + lead + len(stripped)))


def _heading_title(line: str) -> str | None:
    """Heading text if ``line`` looks like a heading, else None."""
    line = line.strip()
    if not line or len(line) > HEADING_MAX_CHARS:
        return None

    markdown = _MARKDOWN_HEADING.match(line)
    if markdown:
        return markdown.group(1).strip()

    if line[-1] in '.,;!?' or (_LIST_ITEM.match(line) and not _NUMBERED_HEADING.match(line)):
        return None
    if _column_count(line) >= 2:
        return None

    words = line.split()
    if len(words) > HEADING_MAX_WORDS:
        return None
    letters = [c for c in line if c.isalpha()]
    if len(letters) < 2:
        return None

    title = line.rstrip(':').strip()
    if _NUMBERED_HEADING.match(line):
        body_words = [w for w in words[1:] if w[:1].isalpha()]
        if body_words and body_words[0][0].isupper():
            return title
        return None
    if all(c.isupper() for c in letters):
        return title
    significant = [w for w in words if len(w) >= 4 and w[0].isalpha()]
    if significant and words[0][0].isupper() and all(w[0].isupper() for w in significant):
        return title
    return None


def _block_type(block: str, is_table: bool) -> SectionType:
    if is_table:
        return SectionType.TABLE
    lines = [line for line in block.split('\n') if line.strip()]
    if lines and _LIST_ITEM.match(lines[0]):
        list_lines = sum(1 for line in lines if _LIST_ITEM.match(line))
        if list_lines * 2 >= len(lines):
            return SectionType.LIST
    return SectionType.PARAGRAPH


def _leading_words(block: str) -> str:
    words = block.split()
    title = " ".join(words[:TITLE_WORDS])
    return title + "..." if len(words) > TITLE_WORDS else title


def _whole_text_section(text: str) -> Section:
    lead = len(text) - len(text.lstrip())
    end = len(text.rstrip())
    return Section(_leading_words(text), SectionType.PARAGRAPH, lead, max(lead, end))


def _column_count(line: str) -> int:
    """Number of cells in a table-like row, or 0 if the line is not one."""
    stripped = line.strip()
    if not stripped:
        return 0
    if '|' in stripped:
        cells = stripped.strip('|').split('|')
    elif '\t' in stripped:
        cells = stripped.split('\t')
    else:
        cells = _MULTI_SPACE.split(stripped)
    return len(cells) if len(cells) >= 2 else 0


def find_tables(text: str) -> list[Table]:
    """Runs of >= 2 consecutive lines with the same column count (>= 2)."""
    tables = []
    run: list[tuple[int, int]] = []  # (line_start, line_end) of the current run
    run_columns = 0
    position = 0

    def close_run():
        if len(run) >= 2:
            first_start, _ = run[0]
            _, last_end = run[-1]
            first_line = text[first_start:run[0][1]]
            start = first_start + len(first_line) - len(first_line.lstrip())
            tables.append(Table(start, last_end, len(run), run_columns))

    for line in text.split('\n'):
        line_start = position
        line_end = line_start + len(line.rstrip())
        position += len(line) + 1

        columns = _column_count(line)
        if columns and columns == run_columns:
            run.append((line_start, line_end))
            continue
        close_run()
        run = [(line_start, line_end)] if columns else []
        run_columns = columns

    close_run()
    return tables


def _keywords(sentence: str) -> list[str]:
    return [
        w for w in (word.lower() for word in _WORD.findall(sentence))
        if len(w) > 3 and w not in _KEYWORD_STOPWORDS
    ]


def text_quality(text: str) -> float:
    """
    Share of whitespace tokens that read as words, discounted by stray symbols.

    Returns:
        Score in [0, 1]; OCR garbage scores low, clean prose close to 1.
    """
    tokens = text.split()
    if not tokens:
        return 0.0
    wordlike = sum(1 for token in tokens if _WORD.fullmatch(token.strip('.,;:!?\'"()[]-')))
    odd_chars = sum(1 for c in text if not (c.isprintable() or c.isspace()) or c == '�')
    score = (wordlike / len(tokens)) * (1.0 - min(1.0, odd_chars / max(1, len(text)) * 10))
    return round(min(1.0, max(0.0, score)), 4)


def structure_complexity(structured: StructuredData) -> float:
    """Mean of section density, table density and document-type weight, in [0, 1]."""
    section_score = min(len(structured.sections) / 10, 1.0)
    table_score = min(len(structured.tables) / 3, 1.0)
    type_score = _TYPE_COMPLEXITY[structured.document_type]
    return round((section_score + table_score + type_score) / 3, 4)
