"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : fake_clock, make_scheduler, make_generator, make_service,
                    study_text, sample_pdf_bytes, blank_pdf_bytes, async_client

Environment strategy:
  - No test talks to a real LLM: generation goes through ScriptedBackend,
    which replays canned CompletionResults / exceptions and records calls.
  - Time is virtual: FakeClock is both the monotonic clock and the sleep
    function handed to RateWindow, RetryExecutor and the pipelines, so
    60-second windows and back-off delays run instantly.
  - PDFs are generated in-memory with PyMuPDF; OCR is disabled.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # HTTP-level tests through the ASGI app
  pytest tests/unit/test_rate_window.py
"""

from __future__ import annotations

import asyncio
import os
import textwrap
from collections import deque
from typing import Any, AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("LLM_PROVIDER",      "none")
os.environ.setdefault("OPENAI_API_KEY",    "")
os.environ.setdefault("OCR_BACKEND",       "none")
os.environ.setdefault("LANGSMITH_API_KEY", "")
os.environ.setdefault("APP_ENV",           "development")
os.environ.setdefault("DEBUG",             "false")

from studyaids.llm.backend import CompletionCall, CompletionResult, GenerationBackend  # noqa: E402
from studyaids.llm.generator import StructuredGenerator                               # noqa: E402
from studyaids.llm.retry import RetryPolicy                                           # noqa: E402
from studyaids.llm.scheduler import RequestScheduler                                  # noqa: E402
from studyaids.llm.spread import SpreadScheduler                                      # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Virtual time
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """
    Monotonic clock + sleep pair. sleep() advances the clock by the requested
    amount and yields once to the event loop, so waiting coroutines interleave
    the way they would in real time.
    """

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ─────────────────────────────────────────────────────────────────────────────
# Scripted generation backend
# ─────────────────────────────────────────────────────────────────────────────

class ScriptedBackend(GenerationBackend):
    """
    Replays a script of responses, one per complete() call.

    Script items:
      SchemaParsed / RawText      returned as-is
      Exception instance          raised
      callable(call) -> item      evaluated per call (for call-dependent replies)

    When the script is exhausted `default` is used; with no default the call
    fails loudly so a test never silently over-calls the backend.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        default:   Any = None,
        clock:     Callable[[], float] | None = None,
    ) -> None:
        self.responses = deque(responses or [])
        self.default   = default
        self.clock     = clock
        self.calls:      list[CompletionCall] = []
        self.call_times: list[float] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def complete(self, call: CompletionCall) -> CompletionResult:
        self.calls.append(call)
        if self.clock is not None:
            self.call_times.append(self.clock())

        item = self.responses.popleft() if self.responses else self.default
        if item is None:
            raise AssertionError(f"ScriptedBackend: no response left for call #{len(self.calls)}")
        if callable(item) and not isinstance(item, BaseException):
            item = item(call)
        if isinstance(item, BaseException):
            raise item
        return item


# ─────────────────────────────────────────────────────────────────────────────
# Core factories
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_scheduler(fake_clock):
    """
    Factory: RequestScheduler on virtual time with zero jitter.

    Usage:
        scheduler = make_scheduler(concurrency=2, requests_per_minute=3)
    """
    def _build(
        concurrency:         int = 1,
        requests_per_minute: int = 100,
        retries:             int = 4,
        base_delay_ms:       int = 800,
        max_queue_depth:     int | None = None,
        safety_margin_ms:    int = 250,
    ) -> RequestScheduler:
        return RequestScheduler(
            concurrency=concurrency,
            requests_per_minute=requests_per_minute,
            retry_policy=RetryPolicy(retries=retries, base_delay_ms=base_delay_ms),
            max_queue_depth=max_queue_depth,
            safety_margin_ms=safety_margin_ms,
            clock=fake_clock,
            sleep=fake_clock.sleep,
            rng=lambda: 0.0,
        )
    return _build


@pytest.fixture
def make_generator(make_scheduler):
    """Factory: StructuredGenerator wired to a fresh scheduler unless one is given."""
    def _build(
        backend:      GenerationBackend | None,
        scheduler:    RequestScheduler | None = None,
        max_attempts: int  = 3,
        schema_mode:  bool = True,
    ) -> StructuredGenerator:
        return StructuredGenerator(
            backend,
            scheduler or make_scheduler(),
            model="test-model",
            max_tokens=512,
            max_attempts=max_attempts,
            schema_mode=schema_mode,
        )
    return _build


@pytest.fixture
def make_service(make_generator, make_scheduler, fake_clock):
    """
    Factory: StudyService with OCR disabled, pacing off and virtual time.

    Usage:
        service = make_service()                           # fallback mode
        service = make_service(ScriptedBackend([...]))     # AI mode
    """
    def _build(
        backend:          GenerationBackend | None = None,
        max_input_chars:  int = 150_000,
        max_upload_bytes: int = 30 * 1024 * 1024,
        spread:           SpreadScheduler | None = None,
    ):
        from studyaids.processing.extractor import TextExtractorOrchestrator
        from studyaids.services.study import StudyService

        scheduler = make_scheduler()
        return StudyService(
            extractor=TextExtractorOrchestrator(ocr=None),
            generator=make_generator(backend, scheduler),
            scheduler=scheduler,
            spread=spread or SpreadScheduler(enabled=False, chunk_pause_ms=0),
            max_input_chars=max_input_chars,
            max_upload_bytes=max_upload_bytes,
            sleep=fake_clock.sleep,
        )
    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Sample text / PDF bytes
# ─────────────────────────────────────────────────────────────────────────────

STUDY_TEXT = (
    "Photosynthesis converts light energy into chemical energy stored in glucose. "
    "Chlorophyll absorbs mostly blue and red light and reflects green light. "
    "The light-dependent reactions take place in the thylakoid membranes of the chloroplast. "
    "Water molecules are split during photolysis, releasing oxygen as a byproduct. "
    "The Calvin cycle fixes carbon dioxide into organic molecules in the stroma. "
    "Rubisco is the enzyme that catalyses the first step of carbon fixation. "
    "ATP and NADPH produced by the light reactions power the Calvin cycle. "
    "Photosynthesis rates depend on light intensity, temperature and carbon dioxide concentration. "
    "Chloroplasts contain their own DNA, supporting the endosymbiotic theory. "
    "Plants in hot climates use C4 and CAM pathways to reduce photorespiration. "
    "Photorespiration wastes energy when Rubisco binds oxygen instead of carbon dioxide. "
    "The products of photosynthesis feed nearly every food chain on Earth."
)


def make_pdf(text: str, lines_per_page: int = 45, width: int = 90) -> bytes:
    """Render `text` into a real PDF with a native text layer."""
    import fitz

    lines: list[str] = []
    for paragraph in text.split("\n"):
        lines.extend(textwrap.wrap(paragraph, width) or [""])

    doc = fitz.open()
    for start in range(0, max(len(lines), 1), lines_per_page):
        page = doc.new_page()
        chunk = lines[start:start + lines_per_page]
        if chunk:
            page.insert_text((56, 72), chunk, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def study_text() -> str:
    return STUDY_TEXT


@pytest.fixture
def sample_pdf_bytes(study_text) -> bytes:
    """One-page PDF whose native text layer holds STUDY_TEXT."""
    return make_pdf(study_text)


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """Valid PDF with an empty page — what a scan looks like without OCR."""
    return make_pdf("")


@pytest.fixture
def exe_bytes() -> bytes:
    """Windows PE executable — rejected by the %PDF magic-byte check."""
    return b"MZ\x90\x00" + b"\x00" * 100


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with the StudyService dependency overridden
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def study_service(make_service):
    """Fallback-mode service (no backend configured)."""
    return make_service()


@pytest.fixture
def app_with_overrides(study_service):
    """
    FastAPI app whose get_study_service dependency returns `study_service`.
    ASGITransport does not run the lifespan, so nothing else is built.
    """
    from studyaids.api.v1.study import get_study_service
    from studyaids.main import app

    app.dependency_overrides[get_study_service] = lambda: study_service

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
