"""
Structured Generator — one logical generation request, end to end.

    generator = StructuredGenerator(backend, scheduler, model="gpt-4o-mini")
    data = await generator.generate(instruction, content, 0.3, FLASHCARDS_SCHEMA)

Lifecycle of a request:

  Queued ──► RateGated ──► Calling ──► Parsing ──► Done
                ▲                         │
                └──────── Retrying ◄──────┘  (parse failure, attempts left)
                                          │
                                          └──► Failed  (MalformedModelOutput)

  - The whole attempt loop runs inside ONE BoundedQueue slot.
  - Every upstream call (including schema-fallback and rate-limit retries)
    passes the RateWindow gate first.
  - Schema mode is tried first on each attempt; if the backend refuses it,
    the same attempt is re-issued in text mode. The refusal does not add an
    attempt, but the text-mode call shares the attempt's budget slot.
  - A parse failure waits 150 ms × attempt_number before a fresh call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from studyaids.core.errors import MalformedModelOutput, SchemaUnsupported, UpstreamUnavailable
from studyaids.llm.backend import (
    CompletionCall,
    CompletionResult,
    GenerationBackend,
    RawText,
    SchemaParsed,
)
from studyaids.llm.json_extract import JSONExtractionError, extract_json
from studyaids.llm.scheduler import RequestScheduler

logger = logging.getLogger(__name__)

PARSE_RETRY_STEP_SECONDS = 0.15
DEFAULT_MAX_ATTEMPTS     = 3


@dataclass(frozen=True)
class GenerationRequest:
    instruction_text: str
    content_text:     str
    temperature:      float
    response_schema:  dict[str, Any] | None
    schema_name:      str
    max_attempts:     int


class StructuredGenerator:
    """
    Schema-first generation with tolerant JSON recovery.

    backend=None means no upstream is configured: generate() raises
    UpstreamUnavailable and callers switch to the local fallback generators.
    """

    def __init__(
        self,
        backend:      GenerationBackend | None,
        scheduler:    RequestScheduler,
        model:        str,
        max_tokens:   int  = 2048,
        max_attempts: int  = DEFAULT_MAX_ATTEMPTS,
        schema_mode:  bool = True,
    ) -> None:
        self._backend      = backend
        self._scheduler    = scheduler
        self._model        = model
        self._max_tokens   = max_tokens
        self._max_attempts = max(1, max_attempts)
        self._schema_mode  = schema_mode

    @property
    def configured(self) -> bool:
        return self._backend is not None

    @property
    def model(self) -> str | None:
        return self._model if self._backend is not None else None

    @property
    def backend_name(self) -> str | None:
        return self._backend.name if self._backend is not None else None

    async def generate(
        self,
        instruction_text: str,
        content_text:     str,
        temperature:      float = 0.3,
        schema:           dict[str, Any] | None = None,
        schema_name:      str = "response",
        max_attempts:     int | None = None,
    ) -> Any:
        """
        Produce a JSON value for (instruction, content).

        Raises:
            UpstreamUnavailable:  no backend configured.
            QueueFull:            the generation queue is at its depth cap.
            RateLimited:          upstream throttling outlived the retries.
            MalformedModelOutput: no parseable output after max_attempts.
            ValueError:           an explicit max_attempts below 1.
        """
        if self._backend is None:
            raise UpstreamUnavailable("No generation backend is configured.")
        if max_attempts is None:
            max_attempts = self._max_attempts
        elif max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        request = GenerationRequest(
            instruction_text=instruction_text,
            content_text=content_text,
            temperature=temperature,
            response_schema=schema,
            schema_name=schema_name,
            max_attempts=max_attempts,
        )
        logger.debug("Generation | state=Queued schema=%s chars=%d", schema_name, len(content_text))
        return await self._scheduler.submit(lambda: self._run(request))

    async def _run(self, request: GenerationRequest) -> Any:
        last_error: Exception | None = None
        last_text = ""

        for attempt in range(1, request.max_attempts + 1):
            result = await self._call(request)

            logger.debug("Generation | state=Parsing attempt=%d", attempt)
            if isinstance(result, SchemaParsed):
                logger.debug("Generation | state=Done attempt=%d mode=schema", attempt)
                return result.value

            last_text = result.text
            try:
                value = extract_json(result.text)
            except JSONExtractionError as exc:
                last_error = exc
                logger.warning(
                    "Generation | unparseable output attempt=%d/%d error=%s",
                    attempt, request.max_attempts, exc,
                )
                if attempt < request.max_attempts:
                    logger.debug("Generation | state=Retrying attempt=%d", attempt)
                    await self._scheduler.sleep(PARSE_RETRY_STEP_SECONDS * attempt)
                continue

            logger.debug("Generation | state=Done attempt=%d mode=text", attempt)
            return value

        logger.error(
            "Generation | state=Failed attempts=%d snippet=%r",
            request.max_attempts, last_text[:120],
        )
        raise MalformedModelOutput(
            f"The model returned output that could not be parsed as JSON after "
            f"{request.max_attempts} attempts: {last_error}",
            last_error=last_error,
            raw_text=last_text,
        )

    async def _call(self, request: GenerationRequest) -> CompletionResult:
        backend = self._backend
        if backend is None:
            raise UpstreamUnavailable("No generation backend is configured.")

        call = CompletionCall(
            model=self._model,
            temperature=request.temperature,
            max_tokens=self._max_tokens,
            system_prompt=request.instruction_text,
            user_prompt=request.content_text,
            response_schema=request.response_schema if self._schema_mode else None,
            schema_name=request.schema_name,
        )

        if call.response_schema is not None:
            try:
                return await self._scheduler.call(lambda: backend.complete(call))
            except SchemaUnsupported as exc:
                logger.info("Generation | schema mode refused, using text mode: %s", exc)
                call = call.without_schema()

        return await self._scheduler.call(lambda: backend.complete(call))
