"""
Observability Tracing — LangSmith integration + span timing

Traces every study request end to end:
  Upload → Extraction → (queue wait → rate gate → LLM call)* → Sanitize

LangSmith (hosted):
  - Activated purely by environment variables: LANGCHAIN_TRACING_V2,
    LANGCHAIN_API_KEY, LANGCHAIN_PROJECT
  - Every ChatOpenAI / AzureChatOpenAI call made by the generation backend
    is traced automatically through LangChain's callback system
  - We only copy LANGSMITH_API_KEY / LANGSMITH_PROJECT from settings into
    those variables when they are not already set

Decorator `@traced(name)`:
  Instruments any async function with timing and error recording.
  Works regardless of backend; plain logging is the baseline.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Callable, Coroutine, TypeVar

from studyaids.core.config import Settings
from studyaids.core.errors import StudyAidError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


# ---------------------------------------------------------------------------
# TracingConfig — initialise at app startup
# ---------------------------------------------------------------------------

class TracingConfig:
    """
    Call once at application startup::

        TracingConfig.init(settings)
    """

    _initialised: bool = False

    @classmethod
    def init(cls, settings: Settings) -> None:
        if cls._initialised:
            return
        cls._initialised = True
        cls._init_langsmith(settings)

    @staticmethod
    def _init_langsmith(settings: Settings) -> None:
        if settings.langsmith_api_key and not os.environ.get("LANGCHAIN_API_KEY"):
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_API_KEY"]    = settings.langsmith_api_key
            os.environ["LANGCHAIN_PROJECT"]    = settings.langsmith_project
            logger.info("LangSmith tracing enabled | project=%s", settings.langsmith_project)
        elif os.environ.get("LANGCHAIN_TRACING_V2") == "true":
            logger.info(
                "LangSmith tracing active (from env) | project=%s",
                os.environ.get("LANGCHAIN_PROJECT", "default"),
            )
        else:
            logger.debug("LangSmith tracing disabled (LANGCHAIN_TRACING_V2 not set)")


# ---------------------------------------------------------------------------
# @traced decorator
# ---------------------------------------------------------------------------

def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator that instruments an async function with timing and error logging.

    Domain errors (StudyAidError) are expected outcomes and logged at WARNING
    without a traceback; anything else is logged at ERROR with one.

    Usage::

        @traced("study.quiz")
        async def quiz(self, text: str, n: int) -> QuizSet:
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            t0 = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except StudyAidError as exc:
                elapsed_ms = (time.perf_counter() - t0) * 1000
                logger.warning(
                    "trace | span=%s elapsed_ms=%.1f error_code=%s",
                    span_name, elapsed_ms, exc.error_code,
                )
                raise
            except Exception as exc:
                elapsed_ms = (time.perf_counter() - t0) * 1000
                logger.error(
                    "trace | span=%s elapsed_ms=%.1f error=%s",
                    span_name, elapsed_ms, exc, exc_info=True,
                )
                raise
            elapsed_ms = (time.perf_counter() - t0) * 1000
            logger.debug("trace | span=%s elapsed_ms=%.1f ok", span_name, elapsed_ms)
            return result

        return wrapper  # type: ignore[return-value]
    return decorator
