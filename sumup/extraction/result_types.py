"""
Extraction Input and Output Types

Document is the immutable ingestion record; ExtractionResult is produced once
per Document by the ExtractionAdapter and consumed read-only downstream.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class SourceKind(Enum):
    TEXT = "text"
    IMAGE_SCAN = "image_scan"
    PDF = "pdf"
    DOCX = "docx"


_EXTENSION_KINDS = {
    '.txt': SourceKind.TEXT,
    '.md': SourceKind.TEXT,
    '.pdf': SourceKind.PDF,
    '.docx': SourceKind.DOCX,
    '.png': SourceKind.IMAGE_SCAN,
    '.jpg': SourceKind.IMAGE_SCAN,
    '.jpeg': SourceKind.IMAGE_SCAN,
    '.tif': SourceKind.IMAGE_SCAN,
    '.tiff': SourceKind.IMAGE_SCAN,
    '.bmp': SourceKind.IMAGE_SCAN,
}


@dataclass(frozen=True)
class Document:
    """
    An ingested document.

    Attributes:
        document_id: Stable identifier (path- or content-derived).
        source_kind: How the text must be extracted.
        byte_size: Size of the raw payload in bytes.
        page_count: Page count, PDF only (None until known).
        is_password_protected: PDF encryption flag.
        path: File on disk, if the document came from a file.
        content: In-memory payload (str for typed text, bytes otherwise).
    """
    document_id: str
    source_kind: SourceKind
    byte_size: int
    page_count: int | None = None
    is_password_protected: bool = False
    path: Path | None = None
    content: str | bytes | None = None

    @classmethod
    def from_text(cls, text: str, document_id: str | None = None) -> Document:
        """Wrap typed or pasted text."""
        raw = text.encode('utf-8')
        return cls(
            document_id=document_id or f"text-{hashlib.sha1(raw).hexdigest()[:12]}",
            source_kind=SourceKind.TEXT,
            byte_size=len(raw),
            content=text,
        )

    @classmethod
    def from_path(cls, path: str | Path) -> Document:
        """
        Build a Document from a file, inferring the kind from its extension.

        Raises:
            ValueError: for unsupported extensions.
            FileNotFoundError: if the file does not exist.
        """
        path = Path(path)
        kind = _EXTENSION_KINDS.get(path.suffix.lower())
        if kind is None:
            supported = ", ".join(sorted(_EXTENSION_KINDS))
            raise ValueError(f"Unsupported file type: {path.suffix or '(none)'}. Supported: {supported}")
        return cls(
            document_id=str(path.resolve()),
            source_kind=kind,
            byte_size=path.stat().st_size,
            path=path,
        )


@dataclass(frozen=True)
class ExtractionResult:
    """
    Output of text extraction.

    Attributes:
        success: Whether readable text was obtained.
        text: Normalized extracted text ("" on failure).
        confidence: Extraction confidence in [0, 1].
        error_message: Failure description when success is False.
        page_count: Pages read (PDF, DOCX estimate), if known.
        method: 'direct_read', 'digital_text', 'ocr' or 'docx'.
        ocr_path: True when the failure or text came from OCR.
    """
    success: bool
    text: str = ""
    confidence: float = 0.0
    error_message: str | None = None
    page_count: int | None = None
    method: str | None = None
    ocr_path: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            object.__setattr__(self, 'confidence', min(1.0, max(0.0, self.confidence)))
        if not self.success and not self.error_message:
            object.__setattr__(self, 'error_message', "Unknown error during text extraction")

    @classmethod
    def failure(cls, message: str, ocr_path: bool = False, page_count: int | None = None) -> ExtractionResult:
        return cls(success=False, error_message=message, ocr_path=ocr_path, page_count=page_count)
