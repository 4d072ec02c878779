"""
Extraction Package

First stage of the pipeline:
- Read raw text from typed input, camera scans, PDF or Word files
- Apply basic normalization (de-hyphenation, page removal, whitespace)
"""

from sumup.extraction.extraction_adapter import ExtractionAdapter
from sumup.extraction.result_types import Document, ExtractionResult, SourceKind

__all__ = ['ExtractionAdapter', 'Document', 'ExtractionResult', 'SourceKind']
