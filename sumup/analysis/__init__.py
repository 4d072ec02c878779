"""
Analysis Package

Structural analysis of extracted text: sections, tables, key points,
document type, reading level and language, plus quality metrics.
"""

from sumup.analysis.classifiers import Classification, DocumentClassifier, HeuristicClassifier
from sumup.analysis.result_types import (
    AnalysisResult,
    DocumentType,
    ProcessingMetrics,
    ReadingLevel,
    Section,
    SectionType,
    StructuredData,
    Table,
)
from sumup.analysis.structural_analyzer import StructuralAnalyzer, find_tables

__all__ = [
    'AnalysisResult',
    'Classification',
    'DocumentClassifier',
    'DocumentType',
    'HeuristicClassifier',
    'ProcessingMetrics',
    'ReadingLevel',
    'Section',
    'SectionType',
    'StructuredData',
    'StructuralAnalyzer',
    'Table',
    'find_tables',
]
