"""
Error taxonomy shared by the extraction layer, the generation core and the API.

Each class carries a stable `error_code` and the HTTP status the API layer
renders it with (see main.py exception handlers):

  ExtractionFailed      422  no readable text after native + OCR strategies
  UpstreamUnavailable   503  no generation backend configured (callers fall
                             back to local generation; clients rarely see it)
  RateLimited           429  upstream throttling that outlived our retries
  SchemaUnsupported     400  backend refused json_schema mode (internal only)
  MalformedModelOutput  502  model output still unparseable after all attempts
  ValidationFailed      422  generated structure empty after sanitization
  QueueFull             503  generation queue at its depth cap
  InvalidUpload         400  missing / non-PDF / oversized upload
"""

from __future__ import annotations


class StudyAidError(Exception):
    """Base class — never raised directly."""

    error_code:  str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ExtractionFailed(StudyAidError):
    error_code  = "EXTRACTION_FAILED"
    http_status = 422


class UpstreamUnavailable(StudyAidError):
    error_code  = "UPSTREAM_UNAVAILABLE"
    http_status = 503


class RateLimited(StudyAidError):
    error_code  = "UPSTREAM_RATE_LIMITED"
    http_status = 429

    def __init__(self, message: str, retry_after_s: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_s = retry_after_s


class SchemaUnsupported(StudyAidError):
    error_code  = "SCHEMA_UNSUPPORTED"
    http_status = 400


class MalformedModelOutput(StudyAidError):
    error_code  = "MALFORMED_MODEL_OUTPUT"
    http_status = 502

    SNIPPET_CHARS = 200

    def __init__(self, message: str, last_error: Exception | None = None, raw_text: str = "") -> None:
        super().__init__(message)
        self.last_error = last_error
        self.snippet = raw_text[: self.SNIPPET_CHARS]


class ValidationFailed(StudyAidError):
    error_code  = "VALIDATION_FAILED"
    http_status = 422


class QueueFull(StudyAidError):
    error_code  = "QUEUE_FULL"
    http_status = 503


class InvalidUpload(StudyAidError):
    error_code  = "INVALID_UPLOAD"
    http_status = 400

    def __init__(self, message: str, http_status: int = 400, error_code: str = "INVALID_UPLOAD") -> None:
        super().__init__(message)
        self.http_status = http_status
        self.error_code  = error_code
