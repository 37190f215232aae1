"""
Text Extraction Orchestrator
════════════════════════════

Runs the extraction strategy cascade for an uploaded PDF.

Strategy selection flow:
  1.  Try PyMuPDF (fast, in-process, native PDF text layer)
  2a. If avg_chars_per_page < min_chars_per_page  →  document is scanned
  2b. Run the OCR backend from settings:
        tesseract     → TesseractExtractor (default, local)
        unstructured  → UnstructuredExtractor (optional extra)
        none          → skip OCR
  3.  If OCR produced nothing, keep whatever native text there was
  4.  clean_text() the result

This module is the only place that knows about the strategy cascade.
The study service only sees ExtractionResult / extract_text().
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass

from studyaids.core.config import Settings
from studyaids.core.errors import ExtractionFailed
from studyaids.processing.ocr import (
    MIN_CHARS_PER_PAGE_THRESHOLD,
    OCR_DPI,
    OCR_TIMEOUT_SECONDS,
    BaseTextExtractor,
    ExtractionStrategyResult,
    PyMuPDFExtractor,
    TesseractExtractor,
    UnstructuredExtractor,
)

logger = logging.getLogger(__name__)

OCR_BACKENDS = ("tesseract", "unstructured", "none")


def clean_text(text: str) -> str:
    """Drop NULs, turn tabs/CRs into spaces, trim line ends, squeeze 3+ newlines."""
    text = (text or "").replace("\x00", "")
    text = re.sub(r"[\t\r]+", " ", text)
    text = re.sub(r"[ \f\v]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def build_ocr_extractor(
    backend:         str,
    langs:           str   = "eng",
    dpi:             int   = OCR_DPI,
    timeout_seconds: float = OCR_TIMEOUT_SECONDS,
) -> BaseTextExtractor | None:
    """Factory for the configured OCR strategy; None disables OCR."""
    backend = backend.lower()
    if backend == "tesseract":
        return TesseractExtractor(langs=langs, dpi=dpi, timeout_seconds=timeout_seconds)
    if backend == "unstructured":
        return UnstructuredExtractor(timeout_seconds=timeout_seconds)
    if backend == "none":
        return None
    raise ValueError(f"Unknown OCR backend {backend!r}; expected one of {OCR_BACKENDS}")


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class ExtractionResult:
    """
    full_text     : cleaned text, pages joined with "\n\n"
    strategy_used : "pymupdf" | "tesseract" | "unstructured"
    used_ocr      : True if image-based OCR produced the text
    total_chars   : len(full_text)
    elapsed_ms    : total extraction wall time (ms)
    page_count    : number of pages in the document
    """
    full_text:     str
    strategy_used: str
    used_ocr:      bool
    total_chars:   int
    elapsed_ms:    float
    page_count:    int


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TextExtractorOrchestrator:
    """
    Stateless orchestrator — select and execute the right extraction strategy.

    Usage:
        orchestrator = TextExtractorOrchestrator.from_settings(settings)
        text = await orchestrator.extract_text(pdf_bytes)
    """

    def __init__(
        self,
        ocr:                BaseTextExtractor | None = None,
        native:             BaseTextExtractor | None = None,
        min_chars_per_page: int = MIN_CHARS_PER_PAGE_THRESHOLD,
    ) -> None:
        self._native             = native or PyMuPDFExtractor()
        self._ocr                = ocr
        self._min_chars_per_page = min_chars_per_page

    @classmethod
    def from_settings(cls, settings: Settings) -> "TextExtractorOrchestrator":
        return cls(
            ocr=build_ocr_extractor(
                settings.ocr_backend,
                langs=settings.ocr_langs,
                dpi=settings.ocr_dpi,
                timeout_seconds=settings.ocr_timeout_seconds,
            ),
            min_chars_per_page=settings.min_chars_per_page,
        )

    @property
    def ocr_backend(self) -> str:
        return self._ocr.strategy_name if self._ocr is not None else "none"

    async def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        """
        Execute the strategy cascade. Never raises; an unreadable document
        comes back with empty text.
        """
        t0 = time.monotonic()

        native = await self._native.extract(pdf_bytes)
        scanned = native.is_likely_scanned(self._min_chars_per_page)
        logger.info(
            "Extraction | strategy=%s pages=%d total_chars=%d avg_chars_per_page=%.0f is_scanned=%s",
            native.strategy_name, len(native.pages), native.total_chars,
            native.avg_chars_per_page, scanned,
        )

        if not scanned:
            return self._build_result(native, native, time.monotonic() - t0)

        if self._ocr is None:
            logger.info("Document appears scanned but OCR is disabled")
            return self._build_result(native, native, time.monotonic() - t0)

        logger.info(
            "Document appears scanned (avg %.0f chars/page < %d). Falling back to OCR backend: %s",
            native.avg_chars_per_page, self._min_chars_per_page, self._ocr.strategy_name,
        )
        ocr_result = await self._ocr.extract(pdf_bytes)
        if ocr_result.total_chars > 0:
            return self._build_result(ocr_result, native, time.monotonic() - t0)

        logger.warning("OCR produced no text; returning native partial text")
        return self._build_result(native, native, time.monotonic() - t0)

    async def extract_text(self, pdf_bytes: bytes) -> ExtractionResult:
        """
        Like extract(), but an empty outcome is an error.

        Raises:
            ExtractionFailed: no text could be recovered by any strategy.
        """
        result = await self.extract(pdf_bytes)
        if not result.full_text:
            raise ExtractionFailed(
                "No text could be extracted from the PDF "
                f"(pages={result.page_count}, ocr={self.ocr_backend})."
            )
        return result

    def _build_result(
        self,
        chosen:      ExtractionStrategyResult,
        native:      ExtractionStrategyResult,
        elapsed_sec: float,
    ) -> ExtractionResult:
        text = clean_text(chosen.full_text)
        return ExtractionResult(
            full_text=text,
            strategy_used=chosen.strategy_name,
            used_ocr=chosen.used_ocr,
            total_chars=len(text),
            elapsed_ms=elapsed_sec * 1000,
            page_count=max(len(native.pages), len(chosen.pages)),
        )
