"""
Request-Governance Core

Everything that stands between a study-aid request and the upstream LLM:

  RateWindow           requests-per-minute gate (sliding 60 s log)
  with_retries         exponential back-off on rate-limit rejections
  BoundedQueue         FIFO admission, fixed concurrency ceiling
  RequestScheduler     owns the three above; one instance per process
  SpreadScheduler      size-proportional pacing between chunk calls
  StructuredGenerator  schema-first generation + tolerant JSON recovery

Public API::

    from studyaids.llm import RequestScheduler, StructuredGenerator, build_backend

    scheduler = RequestScheduler.from_settings(settings)
    generator = StructuredGenerator(build_backend(settings), scheduler, model=settings.llm_model)
    data = await generator.generate(instruction, text, 0.3, schema)
"""

from studyaids.llm.backend import (
    CompletionCall,
    GenerationBackend,
    LangChainChatBackend,
    RawText,
    SchemaParsed,
    build_backend,
)
from studyaids.llm.generator import StructuredGenerator
from studyaids.llm.json_extract import JSONExtractionError, extract_json
from studyaids.llm.queue import BoundedQueue
from studyaids.llm.rate_window import RateWindow
from studyaids.llm.retry import RetryPolicy, with_retries
from studyaids.llm.scheduler import RequestScheduler
from studyaids.llm.spread import SpreadScheduler

__all__ = [
    "BoundedQueue",
    "CompletionCall",
    "GenerationBackend",
    "JSONExtractionError",
    "LangChainChatBackend",
    "RateWindow",
    "RawText",
    "RequestScheduler",
    "RetryPolicy",
    "SchemaParsed",
    "SpreadScheduler",
    "StructuredGenerator",
    "build_backend",
    "extract_json",
    "with_retries",
]
