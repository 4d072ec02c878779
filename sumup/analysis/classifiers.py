"""
Document Classifiers

Document type, reading level and language are estimated by a pluggable
DocumentClassifier so the analyzer (and everything downstream) can be
tested independently of classifier accuracy.

The default HeuristicClassifier uses surface statistics only: sentence and
word lengths, table coverage, technical-token density and stopword hits.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from sumup.analysis.result_types import DocumentType, ReadingLevel, Section, SectionType, Table

_SENTENCE_SPLIT = re.compile(r'(?<=[.!?])\s+')
_WORD = re.compile(r"[^\W\d_]+(?:'[^\W\d_]+)?")

# Reading level thresholds
BASIC_MAX_SENTENCE_WORDS = 12
BASIC_MAX_WORD_LENGTH = 4.6
ADVANCED_MIN_SENTENCE_WORDS = 22
ADVANCED_MIN_LONG_WORD_RATIO = 0.28
LONG_WORD_LETTERS = 8

# Document type thresholds
TABULAR_MIN_COVERAGE = 0.5
MIXED_MIN_COVERAGE = 0.15
TECHNICAL_MIN_DENSITY = 0.04

_TECHNICAL_TERMS = frozenset({
    'algorithm', 'api', 'configuration', 'data', 'database', 'function', 'implementation',
    'interface', 'module', 'parameter', 'parameters', 'protocol', 'server', 'specification',
    'system', 'version', 'install', 'output', 'input', 'variable', 'method', 'query',
})
_TECHNICAL_TOKEN = re.compile(r'[{}();=<>]|\b\d+(?:\.\d+)+\b|\b[a-z]+_[a-z_]+\b|\b\w+\(\)')

_STOPWORDS = {
    'en': frozenset({'the', 'and', 'of', 'to', 'is', 'in', 'that', 'it', 'was', 'for', 'with', 'are', 'this'}),
    'es': frozenset({'el', 'la', 'de', 'que', 'y', 'los', 'las', 'en', 'por', 'con', 'una', 'es', 'para'}),
    'fr': frozenset({'le', 'la', 'les', 'de', 'des', 'et', 'est', 'que', 'une', 'dans', 'pour', 'qui', 'pas'}),
    'de': frozenset({'der', 'die', 'das', 'und', 'ist', 'nicht', 'ein', 'eine', 'mit', 'zu', 'den', 'von', 'auf'}),
}
LANGUAGE_MIN_HITS = 3
LANGUAGE_MIN_RATIO = 0.05


@dataclass(frozen=True)
class Classification:
    document_type: DocumentType
    reading_level: ReadingLevel
    language: str


# Result used when classification is unavailable
UNCLASSIFIED = Classification(DocumentType.UNKNOWN, ReadingLevel.INTERMEDIATE, "und")


class DocumentClassifier(ABC):
    """Interface for document type / reading level / language estimation."""

    @abstractmethod
    def classify(self, text: str, sections: tuple[Section, ...], tables: tuple[Table, ...]) -> Classification:
        """
        Classify a document.

        Args:
            text: Normalized source text.
            sections: Sections already found by the analyzer.
            tables: Table regions already found by the analyzer.
        """


class HeuristicClassifier(DocumentClassifier):
    """Surface-statistics classifier; deterministic for a given input."""

    def classify(self, text: str, sections: tuple[Section, ...], tables: tuple[Table, ...]) -> Classification:
        words = _WORD.findall(text)
        if not words:
            return UNCLASSIFIED
        return Classification(
            document_type=self.document_type(text, words, sections, tables),
            reading_level=self.reading_level(text, words),
            language=self.language(words),
        )

    def reading_level(self, text: str, words: list[str]) -> ReadingLevel:
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if _WORD.search(s)]
        avg_sentence_words = len(words) / max(1, len(sentences))
        avg_word_length = sum(len(w) for w in words) / len(words)
        long_word_ratio = sum(1 for w in words if len(w) >= LONG_WORD_LETTERS) / len(words)

        if avg_sentence_words >= ADVANCED_MIN_SENTENCE_WORDS or long_word_ratio >= ADVANCED_MIN_LONG_WORD_RATIO:
            return ReadingLevel.ADVANCED
        if avg_sentence_words <= BASIC_MAX_SENTENCE_WORDS and avg_word_length <= BASIC_MAX_WORD_LENGTH:
            return ReadingLevel.BASIC
        return ReadingLevel.INTERMEDIATE

    def document_type(
        self,
        text: str,
        words: list[str],
        sections: tuple[Section, ...],
        tables: tuple[Table, ...],
    ) -> DocumentType:
        table_chars = sum(t.end - t.start for t in tables)
        table_coverage = table_chars / max(1, len(text))
        has_prose = any(s.section_type == SectionType.PARAGRAPH for s in sections)

        if table_coverage >= TABULAR_MIN_COVERAGE:
            return DocumentType.TABULAR
        if table_coverage >= MIXED_MIN_COVERAGE and has_prose:
            return DocumentType.MIXED

        lowered = [w.lower() for w in words]
        term_hits = sum(1 for w in lowered if w in _TECHNICAL_TERMS)
        token_hits = len(_TECHNICAL_TOKEN.findall(text))
        technical_density = (term_hits + token_hits) / len(words)
        if technical_density >= TECHNICAL_MIN_DENSITY:
            return DocumentType.TECHNICAL

        if has_prose:
            return DocumentType.NARRATIVE
        return DocumentType.UNKNOWN

    def language(self, words: list[str]) -> str:
        lowered = [w.lower() for w in words]
        scores = {
            tag: sum(1 for w in lowered if w in stopwords)
            for tag, stopwords in _STOPWORDS.items()
        }
        best_tag, best_hits = max(sorted(scores.items()), key=lambda item: item[1])
        if best_hits >= LANGUAGE_MIN_HITS and best_hits / len(lowered) >= LANGUAGE_MIN_RATIO:
            return best_tag
        return "und"
