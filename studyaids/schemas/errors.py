"""
Structured error bodies — uniform envelope for every 4xx/5xx response.

Clients should switch on `error_code`; `message` is for humans.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import BaseModel, Field

from studyaids.core.errors import MalformedModelOutput, StudyAidError


class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    ok:            bool              = False
    error_code:    str               = Field(..., description="Stable machine-readable code")
    message:       str               = Field(..., description="Human-readable summary")
    details:       list[ErrorDetail] = Field(default_factory=list)
    request_id:    str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Factories (keeps handlers thin)
# ---------------------------------------------------------------------------

class StudyErrors:

    @staticmethod
    def from_exception(exc: StudyAidError, request_id: str | None = None) -> ErrorResponse:
        details: list[ErrorDetail] = []
        if isinstance(exc, MalformedModelOutput) and exc.snippet:
            details.append(ErrorDetail(
                field=None,
                message=f"Model output began with: {exc.snippet!r}",
                code=exc.error_code,
            ))
        return ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=details,
            request_id=request_id,
        )

    @staticmethod
    def request_invalid(errors: Sequence[dict[str, Any]], request_id: str | None = None) -> ErrorResponse:
        """Body for FastAPI request validation failures (bad form fields)."""
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=[
                ErrorDetail(
                    field=".".join(str(part) for part in err.get("loc", ())),
                    message=err.get("msg", "invalid value"),
                    code="VALIDATION_ERROR",
                )
                for err in errors
            ],
            request_id=request_id,
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
