"""
Text Extraction Strategies
══════════════════════════

Every strategy turns raw PDF bytes into per-page text and reports how it got
there. The orchestrator (extractor.py) decides which ones run:

  pymupdf       native text layer, in-process, milliseconds per page.
                Image-only pages come back empty.
  tesseract     each page rasterized by PyMuPDF at OCR_DPI and read by
                pytesseract in the configured languages (OCR_LANGS,
                tesseract "+" syntax). Default OCR backend.
  unstructured  unstructured.io hi_res partitioning. Layout-aware and much
                heavier (poppler, detectron2); installed via the
                `unstructured` extra.

Strategies never raise: a failure is logged and reported as an empty result
so the cascade can move on.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# Average chars/page below which a document is treated as a scan
MIN_CHARS_PER_PAGE_THRESHOLD = 50

# Upper bound for one OCR run over the whole document
OCR_TIMEOUT_SECONDS = 120

OCR_DPI = 200


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class PageText:
    page_number:       int      # 1-based
    text:              str
    extraction_method: str = "unknown"


@dataclass
class ExtractionStrategyResult:
    """
    Output of one strategy run over a whole document.

    total_chars counts stripped page text, so blank pages add nothing to it.
    """
    pages:         list[PageText]
    total_chars:   int
    strategy_name: str
    elapsed_ms:    float
    used_ocr:      bool = False

    @classmethod
    def from_pages(cls, pages: list[PageText], strategy_name: str, used_ocr: bool) -> "ExtractionStrategyResult":
        return cls(
            pages=pages,
            total_chars=sum(len(p.text) for p in pages),
            strategy_name=strategy_name,
            elapsed_ms=0.0,
            used_ocr=used_ocr,
        )

    @classmethod
    def empty(cls, strategy_name: str, used_ocr: bool) -> "ExtractionStrategyResult":
        return cls.from_pages([], strategy_name, used_ocr)

    @property
    def full_text(self) -> str:
        return "\n\n".join(p.text for p in self.pages if p.text.strip())

    @property
    def avg_chars_per_page(self) -> float:
        return self.total_chars / len(self.pages) if self.pages else 0.0

    def is_likely_scanned(self, threshold: int = MIN_CHARS_PER_PAGE_THRESHOLD) -> bool:
        return self.avg_chars_per_page < threshold


# ---------------------------------------------------------------------------
# Abstract strategy
# ---------------------------------------------------------------------------

class BaseTextExtractor(ABC):
    """Contract for a strategy: bytes in, ExtractionStrategyResult out, never raises."""

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Reported as ExtractionResult.strategy_used and in /info."""

    @abstractmethod
    async def extract(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        """Return whatever text was recovered; empty pages on failure."""


class _ExecutorExtractor(BaseTextExtractor):
    """
    Runs the blocking `_extract_sync` in the default thread executor.
    A timeout of None waits indefinitely (native text is fast and bounded).
    """

    uses_ocr: bool = False

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds

    async def extract(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        loop = asyncio.get_running_loop()
        started = time.monotonic()

        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(None, self._extract_sync, pdf_bytes),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("%s | timed out after %ss", self.strategy_name, self._timeout)
            result = ExtractionStrategyResult.empty(self.strategy_name, self.uses_ocr)
        except Exception as exc:
            # Unreadable or encrypted documents land here as well
            logger.warning("%s | extraction failed: %s", self.strategy_name, exc, exc_info=self.uses_ocr)
            result = ExtractionStrategyResult.empty(self.strategy_name, self.uses_ocr)

        result.elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            "%s | pages=%d total_chars=%d avg_chars_per_page=%.0f elapsed_ms=%.0f",
            self.strategy_name, len(result.pages), result.total_chars,
            result.avg_chars_per_page, result.elapsed_ms,
        )
        return result

    @abstractmethod
    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        ...

    def _page(self, number: int, text: str) -> PageText:
        return PageText(page_number=number, text=text.strip(), extraction_method=self.strategy_name)


# ---------------------------------------------------------------------------
# Native text layer
# ---------------------------------------------------------------------------

class PyMuPDFExtractor(_ExecutorExtractor):
    """
    Reads the embedded text layer. Multi-column pages may come out in
    stream order rather than reading order.
    """

    @property
    def strategy_name(self) -> str:
        return "pymupdf"

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        import fitz

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            pages = [self._page(n, page.get_text("text") or "") for n, page in enumerate(doc, start=1)]
        return ExtractionStrategyResult.from_pages(pages, self.strategy_name, used_ocr=False)


# ---------------------------------------------------------------------------
# OCR backends
# ---------------------------------------------------------------------------

class TesseractExtractor(_ExecutorExtractor):
    """Local OCR: PyMuPDF renders each page, pytesseract reads the grayscale image."""

    uses_ocr = True

    def __init__(
        self,
        langs:           str   = "eng",
        dpi:             int   = OCR_DPI,
        timeout_seconds: float = OCR_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(timeout_seconds)
        self._langs = langs
        self._dpi   = dpi

    @property
    def strategy_name(self) -> str:
        return "tesseract"

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        import fitz
        import pytesseract
        from PIL import Image

        pages: list[PageText] = []
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for number, page in enumerate(doc, start=1):
                pixmap = page.get_pixmap(dpi=self._dpi, alpha=False)
                image = Image.open(io.BytesIO(pixmap.tobytes("png"))).convert("L")
                text = pytesseract.image_to_string(image, lang=self._langs) or ""
                logger.debug("tesseract | page=%d chars=%d", number, len(text))
                pages.append(self._page(number, text))
        return ExtractionStrategyResult.from_pages(pages, self.strategy_name, used_ocr=True)


class UnstructuredExtractor(_ExecutorExtractor):
    """Layout-aware OCR via unstructured.io; needs poppler and tesseract installed."""

    uses_ocr = True

    def __init__(self, timeout_seconds: float = OCR_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout_seconds)

    @property
    def strategy_name(self) -> str:
        return "unstructured"

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        from unstructured.partition.pdf import partition_pdf

        elements = partition_pdf(
            file=io.BytesIO(pdf_bytes),
            strategy="hi_res",
            include_page_breaks=True,
            infer_table_structure=False,
            extract_images_in_pdf=False,
        )

        by_page: defaultdict[int, list[str]] = defaultdict(list)
        for element in elements:
            number = getattr(element.metadata, "page_number", None) or 1
            text = str(element).strip()
            if text:
                by_page[number].append(text)

        pages = [self._page(number, "\n".join(parts)) for number, parts in sorted(by_page.items())]
        return ExtractionStrategyResult.from_pages(pages, self.strategy_name, used_ocr=True)
