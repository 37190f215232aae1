"""
Unit Tests — TextExtractorOrchestrator
══════════════════════════════════════
Native-text PDFs are rendered in-memory with PyMuPDF. The OCR strategy is
replaced by a stub, so tesseract is not required.

Coverage targets:
  ✅ Native text layer → strategy=pymupdf, no OCR
  ✅ Scanned document → OCR strategy result used
  ✅ OCR returns nothing → native partial text kept
  ✅ OCR disabled → ExtractionFailed for image-only PDFs
  ✅ Garbage bytes → ExtractionFailed (never an unhandled crash)
  ✅ clean_text normalization
"""

from __future__ import annotations

import pytest

from studyaids.core.errors import ExtractionFailed
from studyaids.processing.extractor import (
    TextExtractorOrchestrator,
    build_ocr_extractor,
    clean_text,
)
from studyaids.processing.ocr import (
    BaseTextExtractor,
    ExtractionStrategyResult,
    PageText,
    TesseractExtractor,
    UnstructuredExtractor,
)
from tests.conftest import make_pdf


class _StubOCR(BaseTextExtractor):
    def __init__(self, pages: list[str]) -> None:
        self.pages = pages
        self.calls = 0

    @property
    def strategy_name(self) -> str:
        return "stub-ocr"

    async def extract(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        self.calls += 1
        pages = [PageText(page_number=i, text=t, extraction_method="stub-ocr") for i, t in enumerate(self.pages, 1)]
        return ExtractionStrategyResult.from_pages(pages, self.strategy_name, used_ocr=True)


@pytest.mark.unit
class TestExtractionCascade:

    async def test_native_text_layer(self, sample_pdf_bytes):
        ocr = _StubOCR(["should not be used"])
        result = await TextExtractorOrchestrator(ocr=ocr).extract_text(sample_pdf_bytes)

        assert result.strategy_used == "pymupdf"
        assert result.used_ocr is False
        assert result.page_count == 1
        assert "Photosynthesis converts light energy" in result.full_text
        assert result.total_chars == len(result.full_text)
        assert ocr.calls == 0

    async def test_multi_page_document(self, study_text):
        pdf = make_pdf("\n".join([study_text] * 6), lines_per_page=10)
        result = await TextExtractorOrchestrator().extract_text(pdf)
        assert result.page_count > 1
        assert "\n\n" in result.full_text

    async def test_scanned_document_uses_ocr(self, blank_pdf_bytes):
        ocr = _StubOCR(["Scanned lecture notes about mitosis and meiosis."])
        result = await TextExtractorOrchestrator(ocr=ocr).extract_text(blank_pdf_bytes)

        assert ocr.calls == 1
        assert result.strategy_used == "stub-ocr"
        assert result.used_ocr is True
        assert result.full_text == "Scanned lecture notes about mitosis and meiosis."

    async def test_sparse_text_below_threshold_triggers_ocr(self):
        ocr = _StubOCR(["Full OCR text of the page, much longer than the header."])
        pdf = make_pdf("Header")
        result = await TextExtractorOrchestrator(ocr=ocr, min_chars_per_page=50).extract_text(pdf)
        assert result.strategy_used == "stub-ocr"

    async def test_empty_ocr_keeps_native_partial_text(self):
        ocr = _StubOCR([""])
        result = await TextExtractorOrchestrator(ocr=ocr).extract_text(make_pdf("Header"))

        assert ocr.calls == 1
        assert result.strategy_used == "pymupdf"
        assert result.full_text == "Header"

    async def test_image_only_pdf_without_ocr_fails(self, blank_pdf_bytes):
        with pytest.raises(ExtractionFailed) as exc_info:
            await TextExtractorOrchestrator(ocr=None).extract_text(blank_pdf_bytes)
        assert exc_info.value.http_status == 422

    async def test_unreadable_bytes_fail_cleanly(self):
        orchestrator = TextExtractorOrchestrator(ocr=None)
        result = await orchestrator.extract(b"%PDF-1.4 this is not really a pdf")
        assert result.full_text == ""
        with pytest.raises(ExtractionFailed):
            await orchestrator.extract_text(b"%PDF-1.4 this is not really a pdf")


@pytest.mark.unit
class TestOCRFactory:

    def test_tesseract(self):
        assert isinstance(build_ocr_extractor("tesseract", langs="ita+eng"), TesseractExtractor)

    def test_unstructured(self):
        assert isinstance(build_ocr_extractor("Unstructured"), UnstructuredExtractor)

    def test_none(self):
        assert build_ocr_extractor("none") is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_ocr_extractor("textract")


@pytest.mark.unit
class TestCleanText:

    def test_removes_nul_and_collapses_whitespace(self):
        raw = "Title\x00\r\n\tbody\ttext  \n\n\n\n\nnext paragraph   "
        assert clean_text(raw) == "Title\n body text\n\nnext paragraph"

    def test_none_safe(self):
        assert clean_text("") == ""
