"""
SumUp document processing and summarization engine.

Stages:
    extraction    - Text from typed input, PDF, Word and scanned images
    analysis      - Sections, tables, key points and document metadata
    processing_strategy - SINGLE / DUAL / MULTI request plans
    summarization - Request orchestration and the end-to-end pipeline
    quota         - Daily request counter with UTC-midnight reset
    drafts        - Debounced auto-save of unsent input

Sub-packages are imported explicitly (``from sumup.summarization import
SummarizationPipeline``) so importing ``sumup`` alone stays cheap.
"""

__version__ = "1.0.0"
