"""
FastAPI Application — Entry Point

PDF Study Aids API

Architecture:
  - All routes are versioned under /api/v1/
  - One StudyService per process, built in the lifespan and stored on
    app.state; it owns the request queue, the rate window and the backend
  - Structured JSON error responses on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. CORS — ALLOWED_ORIGINS allowlist (empty = allow all)
  2. Request ID injection — X-Request-ID header on every response
  3. Gzip — compress responses > 1 KB
  4. Request logging — structured log per request with latency
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from studyaids.api.v1.study import router as study_router
from studyaids.core.config import settings
from studyaids.core.errors import RateLimited, StudyAidError
from studyaids.observability.tracing import TracingConfig
from studyaids.schemas.errors import StudyErrors
from studyaids.services.study import StudyService

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: build the process-wide StudyService, log config summary.
    Shutdown: cancel waiting generation requests, drain running ones.
    """
    TracingConfig.init(settings)

    service = StudyService.from_settings(settings)
    app.state.study_service = service

    logger.info(
        "Starting PDF Study Aids | env=%s generation=%s ocr=%s langs=%s",
        settings.app_env,
        "ai" if service.generator.configured else "fallback",
        service.extractor.ocr_backend,
        settings.ocr_langs,
    )
    logger.info(
        "Request governance | concurrency=%d rpm=%d retries=%d max_attempts=%d",
        settings.llm_concurrency, settings.llm_requests_per_minute,
        settings.llm_retries, settings.llm_max_attempts,
    )

    yield

    logger.info("Shutting down PDF Study Aids")
    await service.aclose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="PDF Study Aids",
        description=(
            "Turns PDF course material into summaries, flashcards and multiple-choice "
            "quizzes, pacing LLM traffic under per-minute and concurrency limits."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order — last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # An empty allowlist mirrors the permissive default of the local dev server
    allowed_origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(StudyAidError)
    async def study_error_handler(request: Request, exc: StudyAidError):
        """Render the error taxonomy with its own status code and error_code."""
        request_id = _request_id(request)
        logger.warning(
            "Request failed | path=%s error_code=%s status=%d request_id=%s message=%s",
            request.url.path, exc.error_code, exc.http_status, request_id, exc.message,
        )
        headers = {"X-Request-ID": request_id}
        if isinstance(exc, RateLimited) and exc.retry_after_s:
            headers["Retry-After"] = str(max(1, round(exc.retry_after_s)))
        return JSONResponse(
            status_code=exc.http_status,
            content=StudyErrors.from_exception(exc, request_id).model_dump(mode="json"),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = StudyErrors.request_invalid(exc.errors(), _request_id(request))
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = _request_id(request)
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=StudyErrors.internal_error(request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(study_router, prefix="/api/v1")

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "pdf-study-aids"}

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "studyaids.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
