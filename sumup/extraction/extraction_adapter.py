"""
Extraction Adapter

Turns a Document (typed text, camera scan, PDF or Word file) into a
normalized ExtractionResult with a confidence score.

Extraction steps:
- Step 1: Read text (direct read, pdfplumber, python-docx, or Tesseract OCR)
- Step 2: Basic normalization (de-hyphenation, page number removal,
  whitespace collapse)

Library calls are blocking, so ``extract`` runs them in a worker thread and
stays awaitable. Failures are returned as ``ExtractionResult(success=False)``
rather than raised.
"""

import asyncio
import io
import re
import time
from pathlib import Path

import nltk
import pdfplumber
import pytesseract
from docx import Document as DocxFile
from nltk.corpus import words
from pdf2image import convert_from_path
from PIL import Image

from sumup.config import (
    DEBUG_MODE,
    LARGE_FILE_WARNING_MB,
    MAX_FILE_SIZE_MB,
    MAX_PDF_PAGES,
    MIN_DICTIONARY_CONFIDENCE,
    MIN_DIGITAL_TEXT_CHARS,
    OCR_DPI,
)
from sumup.extraction.result_types import Document, ExtractionResult, SourceKind
from sumup.logging_config import Timer, debug, error, info, warning

# Python-docx estimate: characters per printed page
DOCX_CHARS_PER_PAGE = 3000


class ExtractionAdapter:
    """
    Extracts and normalizes text from documents.

    Results are cached per document_id for the lifetime of the adapter,
    so re-running a pipeline on the same document skips re-extraction.
    """

    def __init__(self):
        self._english_words: set[str] | None = None
        self._cache: dict[str, ExtractionResult] = {}

    @property
    def english_words(self) -> set[str]:
        """NLTK English word list, loaded on first use."""
        if self._english_words is None:
            self._english_words = self._load_dictionary()
        return self._english_words

    def _load_dictionary(self) -> set[str]:
        debug("[EXTRACT] Loading NLTK English words corpus")
        try:
            return set(word.lower() for word in words.words())
        except LookupError:
            warning("[EXTRACT] NLTK words corpus not found. Downloading...")
            nltk.download('words', quiet=not DEBUG_MODE)
            return set(word.lower() for word in words.words())

    async def extract(self, document: Document) -> ExtractionResult:
        """
        Extract normalized text from a document.

        Args:
            document: The document to read.

        Returns:
            ExtractionResult; success=False with error_message on failure.
        """
        cached = self._cache.get(document.document_id)
        if cached is not None:
            debug(f"[EXTRACT] Cache hit for {document.document_id}")
            return cached

        result = await asyncio.to_thread(self.extract_sync, document)
        if result.success:
            self._cache[document.document_id] = result
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def extract_sync(self, document: Document) -> ExtractionResult:
        """Blocking extraction; ``extract`` is the awaitable entry point."""
        info(f"[EXTRACT] Processing {document.source_kind.value} document {document.document_id}")

        if document.is_password_protected:
            return ExtractionResult.failure("Document is password-protected")

        size_mb = document.byte_size / (1024 * 1024)
        if size_mb > MAX_FILE_SIZE_MB:
            message = f"File exceeds maximum size ({MAX_FILE_SIZE_MB}MB). File size: {size_mb:.1f}MB"
            error(f"[EXTRACT] {message}")
            return ExtractionResult.failure(message)
        if size_mb > LARGE_FILE_WARNING_MB:
            warning(f"[EXTRACT] Large file detected ({size_mb:.1f}MB). Processing may take longer.")

        try:
            with Timer(f"Extracting {document.document_id}"):
                if document.source_kind == SourceKind.TEXT:
                    result = self._process_text(document)
                elif document.source_kind == SourceKind.PDF:
                    result = self._process_pdf(document)
                elif document.source_kind == SourceKind.DOCX:
                    result = self._process_docx(document)
                elif document.source_kind == SourceKind.IMAGE_SCAN:
                    result = self._process_image(document)
                else:
                    return ExtractionResult.failure(f"Unsupported source kind: {document.source_kind}")
        except Exception as e:
            error(f"[EXTRACT] Error processing {document.document_id}: {e}", exc_info=True)
            return ExtractionResult.failure(
                f"Unexpected error: {e}",
                ocr_path=document.source_kind == SourceKind.IMAGE_SCAN,
            )

        if not result.success:
            error(f"[EXTRACT] {result.error_message}")
            return result

        with Timer("Text normalization", auto_log=DEBUG_MODE):
            normalized = self._normalize_text(result.text, layout=document.source_kind != SourceKind.TEXT)

        if not normalized.strip():
            return ExtractionResult.failure(
                "Unable to extract readable text. File may be corrupted or contain only images.",
                ocr_path=result.ocr_path,
                page_count=result.page_count,
            )

        return ExtractionResult(
            success=True,
            text=normalized,
            confidence=result.confidence,
            page_count=result.page_count,
            method=result.method,
            ocr_path=result.ocr_path,
        )

    # ------------------------------------------------------------------
    # Per-kind readers
    # ------------------------------------------------------------------

    def _read_bytes(self, document: Document) -> bytes:
        if document.content is not None:
            if isinstance(document.content, str):
                return document.content.encode('utf-8')
            return document.content
        if document.path is None:
            raise ValueError("Document has neither a path nor in-memory content")
        return Path(document.path).read_bytes()

    def _process_text(self, document: Document) -> ExtractionResult:
        if isinstance(document.content, str):
            text = document.content
        else:
            text = self._read_bytes(document).decode('utf-8', errors='replace')
        return ExtractionResult(success=True, text=text, confidence=1.0, method='direct_read')

    def _process_pdf(self, document: Document) -> ExtractionResult:
        debug(f"[EXTRACT] Processing as PDF: {document.document_id}")

        text, page_count, error_type = self._extract_pdf_text(document)
        if text is None:
            messages = {
                'password': "PDF is password-protected or encrypted",
                'corrupted': "PDF file appears to be corrupted or damaged",
                'empty': "PDF has no pages",
                'too_many_pages': f"PDF too large. Maximum {MAX_PDF_PAGES} pages allowed",
            }
            return ExtractionResult.failure(messages.get(error_type, "Failed to extract PDF text"), page_count=page_count)

        dictionary_confidence = self._calculate_dictionary_confidence(text)
        debug(f"[EXTRACT] Dictionary confidence: {dictionary_confidence:.1f}%")

        if dictionary_confidence > MIN_DICTIONARY_CONFIDENCE and len(text) > MIN_DIGITAL_TEXT_CHARS:
            return ExtractionResult(
                success=True,
                text=text,
                confidence=1.0,
                page_count=page_count,
                method='digital_text',
            )

        if document.path is None:
            # pdf2image needs a file; keep whatever digital text there is
            return ExtractionResult(
                success=True,
                text=text,
                confidence=dictionary_confidence / 100,
                page_count=page_count,
                method='digital_text',
            )

        debug("[EXTRACT] Digital text quality insufficient. Performing OCR...")
        with Timer("OCR Processing"):
            return self._perform_pdf_ocr(Path(document.path), page_count)

    def _extract_pdf_text(self, document: Document) -> tuple[str | None, int, str | None]:
        """
        Extract text from PDF using pdfplumber.

        Returns:
            (text, page_count, error_type) where error_type is None on success,
            or one of: 'password', 'corrupted', 'empty', 'too_many_pages', 'unknown'
        """
        source = document.path if document.path is not None else io.BytesIO(self._read_bytes(document))
        try:
            parts = []
            with pdfplumber.open(source) as pdf:
                page_count = len(pdf.pages)
                debug(f"[EXTRACT] PDF has {page_count} pages")
                if page_count == 0:
                    return None, 0, 'empty'
                if page_count > MAX_PDF_PAGES:
                    return None, page_count, 'too_many_pages'
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        parts.append(page_text)
            return "\n".join(parts), page_count, None

        except Exception as e:
            error_msg = str(e).lower()
            if "password" in error_msg or "encrypted" in error_msg:
                return None, 0, 'password'
            if "damaged" in error_msg or "corrupt" in error_msg or "invalid" in error_msg:
                return None, 0, 'corrupted'
            error(f"[EXTRACT] Failed to extract PDF text: {e}", exc_info=True)
            return None, 0, 'unknown'

    def _perform_pdf_ocr(self, file_path: Path, page_count: int) -> ExtractionResult:
        try:
            images = convert_from_path(str(file_path), dpi=OCR_DPI)
            page_texts = []
            for i, image in enumerate(images, 1):
                with Timer(f"OCR page {i}", auto_log=DEBUG_MODE):
                    page_texts.append(pytesseract.image_to_string(image))
            ocr_text = "\n".join(page_texts)
        except Exception as e:
            return ExtractionResult.failure(f"OCR processing failed: {e}", ocr_path=True, page_count=page_count)

        confidence = self._calculate_dictionary_confidence(ocr_text)
        debug(f"[EXTRACT] OCR confidence: {confidence:.1f}%")
        return ExtractionResult(
            success=True,
            text=ocr_text,
            confidence=confidence / 100,
            page_count=page_count or len(images),
            method='ocr',
            ocr_path=True,
        )

    def _process_image(self, document: Document) -> ExtractionResult:
        try:
            image = Image.open(io.BytesIO(self._read_bytes(document)))
            data = pytesseract.image_to_data(image, output_type=pytesseract.Output.DICT)
        except Exception as e:
            return ExtractionResult.failure(f"OCR processing failed: {e}", ocr_path=True)

        tokens = [t for t in data.get('text', []) if t and t.strip()]
        if not tokens:
            return ExtractionResult.failure("No text found in image", ocr_path=True)

        confidences = [float(c) for c in data.get('conf', []) if float(c) >= 0]
        confidence = (sum(confidences) / len(confidences) / 100) if confidences else 0.0

        text = self._join_ocr_words(data)
        return ExtractionResult(success=True, text=text, confidence=confidence, method='ocr', ocr_path=True)

    @staticmethod
    def _join_ocr_words(data: dict) -> str:
        """Rebuild lines from Tesseract word boxes (block/paragraph/line numbers)."""
        lines: dict[tuple, list[str]] = {}
        order: list[tuple] = []
        for i, token in enumerate(data['text']):
            if not token or not token.strip():
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            if key not in lines:
                lines[key] = []
                order.append(key)
            lines[key].append(token.strip())

        out = []
        previous_paragraph = None
        for key in order:
            paragraph = key[:2]
            if previous_paragraph is not None and paragraph != previous_paragraph:
                out.append("")
            out.append(" ".join(lines[key]))
            previous_paragraph = paragraph
        return "\n".join(out)

    def _process_docx(self, document: Document) -> ExtractionResult:
        docx_file = DocxFile(io.BytesIO(self._read_bytes(document)))

        blocks = []
        for para in docx_file.paragraphs:
            text = para.text.strip()
            if not text:
                continue
            style_name = para.style.name if para.style is not None and para.style.name else ""
            if style_name.startswith("Heading") or style_name == "Title":
                # Headings become standalone lines so the analyzer sees them
                blocks.append(text.rstrip(".:"))
            else:
                blocks.append(text)

        for table in docx_file.tables:
            rows = [" | ".join(cell.text.strip() for cell in row.cells) for row in table.rows]
            if rows:
                blocks.append("\n".join(rows))

        text = "\n\n".join(blocks)
        page_estimate = max(1, -(-len(text) // DOCX_CHARS_PER_PAGE)) if text else None
        return ExtractionResult(success=True, text=text, confidence=1.0, page_count=page_estimate, method='docx')

    # ------------------------------------------------------------------
    # Quality and normalization
    # ------------------------------------------------------------------

    def _calculate_dictionary_confidence(self, text: str) -> float:
        """
        Percentage of alphabetic tokens that are English words.

        Returns:
            Confidence percentage (0-100)
        """
        if not text:
            return 0.0

        tokens = re.findall(r'\b[a-zA-Z]+\b', text.lower())
        if not tokens:
            return 0.0

        valid_words = sum(1 for token in tokens if token in self.english_words)
        return (valid_words / len(tokens)) * 100

    @staticmethod
    def _is_page_number(line: str) -> bool:
        """
        Check if a line is a page number.

        Common patterns: "Page 1", "Page 1 of 10", "- 1 -", "12", "Pg. 3", "3/10"
        """
        line = line.strip()
        if re.match(r'^Page\s+\d+(\s+of\s+\d+)?$', line, re.IGNORECASE):
            return True
        if re.match(r'^[-–]\s*\d+\s*[-–]$', line):
            return True
        if re.match(r'^\d+$', line) and len(line) <= 4:
            return True
        if re.match(r'^P(g)?\.?\s*\d+$', line, re.IGNORECASE):
            return True
        if re.match(r'^\d+/\d+$', line):
            return True
        return False

    def _normalize_text(self, raw_text: str, layout: bool = True) -> str:
        """
        Apply basic normalization rules.

        1. Line endings to \\n
        2. De-hyphenation (rejoin words split across lines), layout sources only
        3. Page number line removal, layout sources only
        4. Trailing whitespace and blank-line collapse (max one blank line)
        """
        start = time.perf_counter()
        text = raw_text.replace('\r\n', '\n').replace('\r', '\n')
        if layout:
            text = re.sub(r'(\w+)-[ \t]*\n[ \t]*(\w+)', r'\1\2', text)
            lines = [line.rstrip() for line in text.split('\n') if not self._is_page_number(line)]
        else:
            lines = [line.rstrip() for line in text.split('\n')]
        text = '\n'.join(lines)

        text = re.sub(r'\n\s*\n\s*\n+', '\n\n', text)
        text = text.strip()

        debug(
            f"[EXTRACT] Normalization reduced text from {len(raw_text)} to {len(text)} characters "
            f"in {(time.perf_counter() - start) * 1000:.0f} ms"
        )
        return text
