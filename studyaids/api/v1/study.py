"""
Study Aids API Router

  GET  /api/v1/ping         liveness of the API process
  GET  /api/v1/info         OCR backend, generation mode, governance limits
  POST /api/v1/extract      PDF → text
  POST /api/v1/summary      PDF → Summary
  POST /api/v1/flashcards   PDF → FlashcardSet
  POST /api/v1/quiz         PDF → QuizSet

Request lifecycle (POST routes):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Content-Length guard (reject before reading body)    │
  │ 2. Upload validation (size cap + %PDF magic bytes)      │
  │ 3. Text extraction (native layer → OCR if scanned)      │
  │ 4. Truncation to max_input_chars                        │
  │ 5. Generation (LLM or local fallback) + sanitization    │
  └─────────────────────────────────────────────────────────┘

Errors are raised as StudyAidError subclasses and rendered into
ErrorResponse by the handlers registered in main.py.
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from studyaids.core.errors import InvalidUpload
from studyaids.schemas.errors import ErrorResponse
from studyaids.schemas.study import ArtifactResponse, ExtractResponse, SummaryLength
from studyaids.services.study import StudyService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Study Aids"])

# Multipart framing overhead allowed on top of max_upload_bytes
_FORM_OVERHEAD_BYTES = 4096

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing upload or invalid request"},
    413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
    415: {"model": ErrorResponse, "description": "Upload is not a PDF"},
    422: {"model": ErrorResponse, "description": "No text extracted, or no valid items generated"},
    429: {"model": ErrorResponse, "description": "Upstream rate limit outlived the retries"},
    502: {"model": ErrorResponse, "description": "Model output could not be parsed"},
    503: {"model": ErrorResponse, "description": "Generation queue is full"},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_study_service(request: Request) -> StudyService:
    """The process-wide StudyService built in the app lifespan."""
    return request.app.state.study_service


StudyDep = Annotated[StudyService, Depends(get_study_service)]


async def _read_upload(request: Request, file: UploadFile | None, service: StudyService) -> bytes:
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() \
            and int(content_length) > service.max_upload_bytes + _FORM_OVERHEAD_BYTES:
        raise InvalidUpload(
            f"File exceeds the maximum size of {service.max_upload_bytes // (1024 * 1024)} MB.",
            http_status=413,
            error_code="FILE_TOO_LARGE",
        )
    if file is None:
        raise InvalidUpload("No file uploaded (expected multipart field 'file').")
    return await file.read()


async def _extract(request: Request, file: UploadFile | None, service: StudyService) -> tuple[str, int, bool]:
    """Returns (text ready for generation, extracted char count, truncated)."""
    content = await _read_upload(request, file, service)
    result = await service.extract(content, filename=file.filename if file else None)
    text, truncated = service.truncate(result.full_text)
    return text, result.total_chars, truncated


# ---------------------------------------------------------------------------
# Health / info
# ---------------------------------------------------------------------------

@router.get("/ping", summary="Liveness check")
async def ping() -> dict:
    return {"ok": True, "pong": True}


@router.get("/info", summary="Extraction and generation configuration")
async def info(service: StudyDep) -> dict:
    return {"ok": True, **service.info()}


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@router.post(
    "/extract",
    response_model=ExtractResponse,
    summary="Extract the text of a PDF",
    responses=_ERROR_RESPONSES,
)
async def extract(
    request: Request,
    service: StudyDep,
    file:    Optional[UploadFile] = File(None, description="PDF document (max 30 MB)"),
) -> ExtractResponse:
    content = await _read_upload(request, file, service)
    result = await service.extract(content, filename=file.filename if file else None)
    return ExtractResponse(
        chars=result.total_chars,
        text=result.full_text,
        strategy=result.strategy_used,
        used_ocr=result.used_ocr,
        page_count=result.page_count,
    )


# ---------------------------------------------------------------------------
# Study aids
# ---------------------------------------------------------------------------

@router.post(
    "/summary",
    response_model=ArtifactResponse,
    summary="Summarize a PDF",
    responses=_ERROR_RESPONSES,
)
async def summary(
    request: Request,
    service: StudyDep,
    file:    Optional[UploadFile] = File(None, description="PDF document (max 30 MB)"),
    subject: Optional[str]        = Form(None, max_length=200),
    length:  SummaryLength        = Form(SummaryLength.MEDIUM),
) -> ArtifactResponse:
    text, chars, truncated = await _extract(request, file, service)
    artifact = await service.summarize(text, subject=subject, length=length)
    return ArtifactResponse(source_chars=chars, truncated=truncated, artifact=artifact)


@router.post(
    "/flashcards",
    response_model=ArtifactResponse,
    summary="Generate flashcards from a PDF",
    responses=_ERROR_RESPONSES,
)
async def flashcards(
    request: Request,
    service: StudyDep,
    file:    Optional[UploadFile] = File(None, description="PDF document (max 30 MB)"),
    n:       int                  = Form(12, ge=1, le=50),
    subject: Optional[str]        = Form(None, max_length=200),
) -> ArtifactResponse:
    text, chars, truncated = await _extract(request, file, service)
    artifact = await service.flashcards(text, n=n, subject=subject)
    return ArtifactResponse(source_chars=chars, truncated=truncated, artifact=artifact)


@router.post(
    "/quiz",
    response_model=ArtifactResponse,
    summary="Generate a multiple-choice quiz from a PDF",
    responses=_ERROR_RESPONSES,
)
async def quiz(
    request: Request,
    service: StudyDep,
    file:    Optional[UploadFile] = File(None, description="PDF document (max 30 MB)"),
    n:       int                  = Form(10, ge=1, le=30),
    subject: Optional[str]        = Form(None, max_length=200),
) -> ArtifactResponse:
    text, chars, truncated = await _extract(request, file, service)
    artifact = await service.quiz(text, n=n, subject=subject)
    return ArtifactResponse(source_chars=chars, truncated=truncated, artifact=artifact)
