"""
Tolerant JSON extraction from free-form model output.

Models asked for JSON still wrap it in prose or markdown fences. Recovery
order:
  1. If the text has a fenced code block, keep only its body
     (a block labelled ```json wins over an unlabelled one).
  2. json.loads on what is left.
  3. Otherwise slice from the first '{' or '[' to the last matching closer
     ('}' for an object, ']' for an array) and parse that.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```([A-Za-z0-9_-]*)[ \t]*\n?(.*?)```", re.DOTALL)


class JSONExtractionError(ValueError):
    """No JSON value could be recovered from the text."""


def strip_code_fence(text: str) -> str:
    """Return the body of the preferred fenced block, or `text` unchanged."""
    blocks = _FENCE_RE.findall(text)
    if not blocks:
        return text
    for label, body in blocks:
        if label.lower() == "json":
            return body.strip()
    return blocks[0][1].strip()


def extract_json(text: str) -> Any:
    """
    Parse a JSON value out of noisy model output.

    Raises:
        JSONExtractionError: if nothing parseable is found.
    """
    candidate = strip_code_fence(text or "").strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (candidate.find("{"), candidate.find("[")) if i >= 0]
    if not starts:
        raise JSONExtractionError("no JSON found in model output")

    start = min(starts)
    closer = "}" if candidate[start] == "{" else "]"
    end = candidate.rfind(closer)
    if end <= start:
        raise JSONExtractionError(f"no closing '{closer}' found in model output")

    try:
        return json.loads(candidate[start : end + 1])
    except json.JSONDecodeError as exc:
        raise JSONExtractionError(f"invalid JSON in model output: {exc}") from exc
