"""
Generation Backends — the upstream text-generation contract.

The core never talks to an SDK directly. It hands a CompletionCall to a
GenerationBackend and receives a tagged result:

    SchemaParsed(value)   the backend enforced the JSON schema and parsed it
    RawText(text)         free text; the caller runs tolerant JSON extraction

Backends translate SDK failures into the error taxonomy:
    RateLimited        HTTP 429 / RateLimitError      → retried by RetryExecutor
    SchemaUnsupported  400 mentioning response_format → text-mode fallback
    anything else      propagates untouched

Shipped implementation: LangChain chat models (ChatOpenAI / AzureChatOpenAI),
built per call so temperature can vary between summary, flashcards and quiz.
SDK-level retries are disabled (max_retries=0); retrying is the core's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from studyaids.core.config import Settings
from studyaids.core.errors import RateLimited, SchemaUnsupported

logger = logging.getLogger(__name__)

_SCHEMA_REJECTION_HINTS = ("response_format", "json_schema", "structured output")


# ---------------------------------------------------------------------------
# Call / result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletionCall:
    """One upstream request, fully specified."""
    model:           str
    temperature:     float
    max_tokens:      int
    system_prompt:   str
    user_prompt:     str
    response_schema: dict[str, Any] | None = None
    schema_name:     str                   = "response"

    def without_schema(self) -> "CompletionCall":
        return CompletionCall(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
            user_prompt=self.user_prompt,
            response_schema=None,
            schema_name=self.schema_name,
        )


@dataclass(frozen=True)
class SchemaParsed:
    value: Any


@dataclass(frozen=True)
class RawText:
    text: str


CompletionResult = SchemaParsed | RawText


# ---------------------------------------------------------------------------
# Abstract backend
# ---------------------------------------------------------------------------

class GenerationBackend(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and /info."""

    @abstractmethod
    async def complete(self, call: CompletionCall) -> CompletionResult:
        """
        Run one completion.

        Raises:
            RateLimited:       upstream throttled the request.
            SchemaUnsupported: schema mode was requested but refused.
        """


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _status_code(exc: Exception) -> int | None:
    code = getattr(exc, "status_code", None)
    if code is None:
        code = getattr(getattr(exc, "response", None), "status_code", None)
    return code if isinstance(code, int) else None


def _retry_after(exc: Exception) -> float | None:
    headers = getattr(getattr(exc, "response", None), "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def translate_error(exc: Exception) -> Exception:
    """Map an SDK exception onto the error taxonomy (or return it unchanged)."""
    name   = type(exc).__name__
    status = _status_code(exc)

    if name.endswith("RateLimitError") or status == 429:
        return RateLimited(f"Upstream rate limit: {exc}", retry_after_s=_retry_after(exc))

    if name.endswith("BadRequestError") or status == 400:
        lowered = str(exc).lower()
        if any(hint in lowered for hint in _SCHEMA_REJECTION_HINTS):
            return SchemaUnsupported(f"Backend rejected schema mode: {exc}")

    return exc


def _content_text(message: Any) -> str:
    """AIMessage.content may be a string or a list of content parts."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")


# ---------------------------------------------------------------------------
# LangChain chat backend
# ---------------------------------------------------------------------------

class LangChainChatBackend(GenerationBackend):
    """
    OpenAI / Azure OpenAI through LangChain chat models.

    Schema mode uses `with_structured_output(method="json_schema",
    include_raw=True)`: when the SDK parses the reply we get SchemaParsed,
    when it cannot we still get the raw message back as RawText.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._provider = settings.llm_provider.lower()

    @property
    def name(self) -> str:
        return self._provider

    def build_llm(self, call: CompletionCall) -> BaseChatModel:
        if self._provider == "openai":
            from langchain_openai import ChatOpenAI
            kwargs: dict[str, Any] = {}
            if self._settings.openai_base_url:
                kwargs["base_url"] = self._settings.openai_base_url
            return ChatOpenAI(
                model=call.model,
                api_key=self._settings.openai_api_key,
                temperature=call.temperature,
                max_tokens=call.max_tokens,
                max_retries=0,
                **kwargs,
            )

        if self._provider == "azure_openai":
            from langchain_openai import AzureChatOpenAI
            return AzureChatOpenAI(
                azure_deployment=self._settings.azure_openai_deployment,
                azure_endpoint=self._settings.azure_openai_endpoint,
                api_key=self._settings.azure_openai_api_key,   # type: ignore[arg-type]
                api_version=self._settings.azure_openai_api_version,
                temperature=call.temperature,
                max_tokens=call.max_tokens,
                max_retries=0,
            )

        raise ValueError(f"Unsupported LLM provider: {self._provider}")

    async def complete(self, call: CompletionCall) -> CompletionResult:
        llm = self.build_llm(call)
        messages: list[BaseMessage] = [
            SystemMessage(content=call.system_prompt),
            HumanMessage(content=call.user_prompt),
        ]

        try:
            if call.response_schema is not None:
                structured = llm.with_structured_output(
                    {"name": call.schema_name, "schema": call.response_schema},
                    method="json_schema",
                    include_raw=True,
                )
                out = await structured.ainvoke(messages)
                if out.get("parsed") is not None:
                    return SchemaParsed(out["parsed"])
                if out.get("parsing_error") is not None:
                    logger.debug("Schema output not parsed by SDK: %s", out["parsing_error"])
                return RawText(_content_text(out.get("raw")))

            reply = await llm.ainvoke(messages)
            return RawText(_content_text(reply))

        except Exception as exc:
            translated = translate_error(exc)
            if translated is exc:
                raise
            raise translated from exc


def build_backend(settings: Settings) -> GenerationBackend | None:
    """Return the configured backend, or None for fallback (demo) mode."""
    if not settings.generation_configured:
        logger.warning(
            "No generation backend configured (provider=%s), using local fallback generators",
            settings.llm_provider,
        )
        return None
    logger.info("Generation backend | provider=%s model=%s", settings.llm_provider, settings.llm_model)
    return LangChainChatBackend(settings)
