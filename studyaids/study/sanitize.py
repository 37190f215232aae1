"""
Sanitization of model output into valid artifacts.

Models drift from the requested shape: missing fields, five options instead
of four, an answer index of 4, the same question twice. Invalid items are
dropped individually; an empty result fails the whole request with
ValidationFailed, so callers never receive a silently empty artifact.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from studyaids.core.errors import ValidationFailed
from studyaids.schemas.study import Card, Difficulty, Question

logger = logging.getLogger(__name__)

OPTION_COUNT = 4

_WS_RE = re.compile(r"\s+")

_DIFFICULTY_ALIASES: dict[str, Difficulty] = {
    "easy":      Difficulty.EASY,
    "facile":    Difficulty.EASY,
    "medium":    Difficulty.MEDIUM,
    "media":     Difficulty.MEDIUM,
    "medio":     Difficulty.MEDIUM,
    "hard":      Difficulty.HARD,
    "difficile": Difficulty.HARD,
}


def normalize_key(text: str) -> str:
    """Case- and whitespace-insensitive identity used for de-duplication."""
    return _WS_RE.sub(" ", text).strip().casefold()


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _items(raw: Any, key: str) -> list[Any]:
    """Accept {"cards": [...]} or a bare list."""
    if isinstance(raw, dict):
        raw = raw.get(key, [])
    return raw if isinstance(raw, list) else []


def _difficulty(value: Any) -> Difficulty:
    return _DIFFICULTY_ALIASES.get(_as_text(value).lower(), Difficulty.MEDIUM)


def _tags(value: Any) -> set[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, Iterable):
        return set()
    return {t.strip().lower() for t in value if isinstance(t, str) and t.strip()}


def _clamp_index(value: Any) -> int:
    try:
        index = int(value)
    except (TypeError, ValueError):
        return 0
    return min(max(index, 0), OPTION_COUNT - 1)


# ---------------------------------------------------------------------------
# Flashcards
# ---------------------------------------------------------------------------

def sanitize_cards(raw: Any, limit: int) -> list[Card]:
    cards: list[Card] = []
    seen: set[str] = set()

    for item in _items(raw, "cards"):
        if not isinstance(item, dict):
            continue
        front, back = _as_text(item.get("front")), _as_text(item.get("back"))
        if not front or not back:
            continue
        key = normalize_key(front)
        if key in seen:
            continue
        seen.add(key)
        cards.append(Card(
            front=front,
            back=back,
            difficulty=_difficulty(item.get("difficulty")),
            tags=_tags(item.get("tags", [])),
        ))
        if len(cards) >= limit:
            break

    if not cards:
        raise ValidationFailed("The model did not return any usable flashcards.")
    return cards


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

def _answer_position(raw_options: list[Any], raw_index: Any) -> int | None:
    """
    Position of the correct answer once blank options are removed and the
    list is cut to OPTION_COUNT. An in-range index refers to the model's own
    list and follows its option through the cleanup; an out-of-range one is
    clamped into [0, OPTION_COUNT - 1]. None when the answer itself was blank
    or falls past the cut.
    """
    try:
        index = int(raw_index)
    except (TypeError, ValueError):
        index = 0
    if not 0 <= index < len(raw_options):
        return _clamp_index(index)
    if not _as_text(raw_options[index]):
        return None
    position = sum(1 for o in raw_options[:index] if _as_text(o))
    return position if position < OPTION_COUNT else None


def sanitize_questions(raw: Any, limit: int) -> list[Question]:
    questions: list[Question] = []
    seen: set[str] = set()
    dropped = 0

    for item in _items(raw, "questions"):
        if not isinstance(item, dict):
            dropped += 1
            continue

        stem = _as_text(item.get("question"))
        raw_options = item.get("options")
        if not isinstance(raw_options, list):
            raw_options = []
        options = [_as_text(o) for o in raw_options if _as_text(o)]
        if not stem or len(options) < OPTION_COUNT:
            dropped += 1
            continue

        correct = _answer_position(raw_options, item.get("correct_index", item.get("correctIndex", 0)))
        if correct is None:
            logger.debug("Quiz sanitization | answer blank or cut off, dropping %r", stem[:80])
            dropped += 1
            continue

        key = normalize_key(stem)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)

        questions.append(Question(
            question=stem,
            options=options[:OPTION_COUNT],
            correct_index=correct,
            explanation=_as_text(item.get("explanation")),
        ))
        if len(questions) >= limit:
            break

    if dropped:
        logger.info("Quiz sanitization | kept=%d dropped=%d", len(questions), dropped)
    if not questions:
        raise ValidationFailed("The model did not return any valid quiz questions.")
    return questions
