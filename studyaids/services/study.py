"""
Study Service

One object per process (built in the FastAPI lifespan, stored on app.state)
that owns every piece of shared state a request touches:

  TextExtractorOrchestrator   PDF → text (native layer, OCR fallback)
  RequestScheduler            queue + rate window + retry policy
  StructuredGenerator         schema-first generation on top of the scheduler
  SpreadScheduler             pacing for large inputs
  ChunkedSummaryPipeline / FlashcardBuilder / QuizBuilder

Upload flow per request:
  1. Validate the upload (size cap, %PDF magic bytes)
  2. Extract text (ExtractionFailed if nothing is recoverable)
  3. Truncate to max_input_chars (logged, flagged in the response)
  4. Build the artifact via the LLM, or the local fallback generators when
     no backend is configured
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from studyaids.core.config import Settings
from studyaids.core.errors import InvalidUpload
from studyaids.llm.backend import GenerationBackend, build_backend
from studyaids.llm.generator import StructuredGenerator
from studyaids.llm.scheduler import RequestScheduler
from studyaids.llm.spread import SpreadScheduler
from studyaids.observability.tracing import traced
from studyaids.processing.extractor import ExtractionResult, TextExtractorOrchestrator
from studyaids.schemas.study import FlashcardSet, QuizSet, Summary, SummaryLength
from studyaids.study.flashcards import DEFAULT_CARD_COUNT, FlashcardBuilder
from studyaids.study.quiz import DEFAULT_QUESTION_COUNT, QuizBuilder
from studyaids.study.summary import ChunkedSummaryPipeline

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


# ---------------------------------------------------------------------------
# Upload validation
# ---------------------------------------------------------------------------

def validate_pdf_upload(content: bytes, filename: str | None, max_bytes: int) -> None:
    """
    Reject empty, oversized and non-PDF uploads.
    File type is detected from magic bytes, never from the client's Content-Type.
    """
    if not content:
        raise InvalidUpload("No file uploaded (expected multipart field 'file').")
    if len(content) > max_bytes:
        raise InvalidUpload(
            f"File exceeds the maximum size of {max_bytes // (1024 * 1024)} MB.",
            http_status=413,
            error_code="FILE_TOO_LARGE",
        )
    if not content.startswith(PDF_MAGIC):
        raise InvalidUpload(
            f"'{filename or 'upload'}' is not a PDF document.",
            http_status=415,
            error_code="UNSUPPORTED_FILE_TYPE",
        )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class StudyService:

    def __init__(
        self,
        extractor:           TextExtractorOrchestrator,
        generator:           StructuredGenerator,
        scheduler:           RequestScheduler,
        spread:              SpreadScheduler,
        summary_chunk_chars: int = 8_000,
        max_input_chars:     int = 150_000,
        max_upload_bytes:    int = 30 * 1024 * 1024,
        ocr_langs:           str = "eng",
        sleep:               Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.extractor        = extractor
        self.generator        = generator
        self.scheduler        = scheduler
        self.spread           = spread
        self.max_input_chars  = max_input_chars
        self.max_upload_bytes = max_upload_bytes
        self.ocr_langs        = ocr_langs

        self._summary    = ChunkedSummaryPipeline(generator, spread, summary_chunk_chars, sleep=sleep)
        self._flashcards = FlashcardBuilder(generator, spread, sleep=sleep)
        self._quiz       = QuizBuilder(generator, spread, sleep=sleep)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend:  GenerationBackend | None = None,
    ) -> "StudyService":
        scheduler = RequestScheduler.from_settings(settings)
        if backend is None:
            backend = build_backend(settings)
        model = (
            settings.azure_openai_deployment
            if settings.llm_provider.lower() == "azure_openai"
            else settings.llm_model
        )
        generator = StructuredGenerator(
            backend,
            scheduler,
            model=model,
            max_tokens=settings.llm_max_tokens,
            max_attempts=settings.llm_max_attempts,
            schema_mode=settings.llm_schema_mode,
        )
        spread = SpreadScheduler(
            enabled=settings.spread_enabled,
            min_chars=settings.spread_min_chars,
            max_chars=settings.spread_max_chars,
            max_delay_ms=settings.spread_max_delay_ms,
            chunk_pause_ms=settings.chunk_pause_ms,
        )
        return cls(
            extractor=TextExtractorOrchestrator.from_settings(settings),
            generator=generator,
            scheduler=scheduler,
            spread=spread,
            summary_chunk_chars=settings.summary_chunk_chars,
            max_input_chars=settings.max_input_chars,
            max_upload_bytes=settings.max_upload_bytes,
            ocr_langs=settings.ocr_langs,
        )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @traced("study.extract")
    async def extract(self, pdf_bytes: bytes, filename: str | None = None) -> ExtractionResult:
        validate_pdf_upload(pdf_bytes, filename, self.max_upload_bytes)
        result = await self.extractor.extract_text(pdf_bytes)
        logger.info(
            "StudyService | extracted file=%s pages=%d chars=%d strategy=%s ocr=%s",
            filename, result.page_count, result.total_chars, result.strategy_used, result.used_ocr,
        )
        return result

    def truncate(self, text: str) -> tuple[str, bool]:
        if len(text) <= self.max_input_chars:
            return text, False
        logger.info(
            "StudyService | truncating input chars=%d max_input_chars=%d",
            len(text), self.max_input_chars,
        )
        return text[: self.max_input_chars], True

    # ------------------------------------------------------------------
    # Study aids
    # ------------------------------------------------------------------

    @traced("study.summary")
    async def summarize(
        self,
        text:    str,
        subject: str | None = None,
        length:  SummaryLength = SummaryLength.MEDIUM,
    ) -> Summary:
        text, _ = self.truncate(text)
        return await self._summary.summarize(text, subject, length)

    @traced("study.flashcards")
    async def flashcards(
        self,
        text:    str,
        n:       int = DEFAULT_CARD_COUNT,
        subject: str | None = None,
    ) -> FlashcardSet:
        text, _ = self.truncate(text)
        return await self._flashcards.build(text, n, subject)

    @traced("study.quiz")
    async def quiz(
        self,
        text:    str,
        n:       int = DEFAULT_QUESTION_COUNT,
        subject: str | None = None,
    ) -> QuizSet:
        text, _ = self.truncate(text)
        return await self._quiz.build(text, n, subject)

    # ------------------------------------------------------------------
    # Introspection / lifecycle
    # ------------------------------------------------------------------

    def info(self) -> dict[str, Any]:
        return {
            "ocr":        self.extractor.ocr_backend,
            "langs":      self.ocr_langs,
            "generation": "ai" if self.generator.configured else "fallback",
            "backend":    self.generator.backend_name,
            "model":      self.generator.model,
            "scheduler":  self.scheduler.snapshot(),
            "limits": {
                "max_upload_bytes": self.max_upload_bytes,
                "max_input_chars":  self.max_input_chars,
            },
        }

    async def aclose(self) -> None:
        await self.scheduler.aclose()
