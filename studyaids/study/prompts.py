"""
Prompt templates and JSON response schemas for the three study aids.

Schemas are sent to the backend in json_schema mode and double as the shape
the tolerant-JSON path expects back. They are deliberately loose (no
`strict`): sanitization in study/sanitize.py enforces the real invariants.
"""

from __future__ import annotations

from typing import Final

from studyaids.schemas.study import SummaryLength

# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

SUMMARY_SCHEMA: Final[dict] = {
    "type": "object",
    "properties": {
        "text": {"type": "string"},
    },
    "required": ["text"],
}

FLASHCARDS_SCHEMA: Final[dict] = {
    "type": "object",
    "properties": {
        "cards": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "front":      {"type": "string"},
                    "back":       {"type": "string"},
                    "difficulty": {"type": "string", "enum": ["easy", "medium", "hard"]},
                    "tags":       {"type": "array", "items": {"type": "string"}},
                },
                "required": ["front", "back", "difficulty", "tags"],
            },
        },
    },
    "required": ["cards"],
}

QUIZ_SCHEMA: Final[dict] = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question":      {"type": "string"},
                    "options":       {"type": "array", "items": {"type": "string"}, "minItems": 4, "maxItems": 4},
                    "correct_index": {"type": "integer", "minimum": 0, "maximum": 3},
                    "explanation":   {"type": "string"},
                },
                "required": ["question", "options", "correct_index", "explanation"],
            },
        },
    },
    "required": ["questions"],
}

# ---------------------------------------------------------------------------
# Length targets
# ---------------------------------------------------------------------------

SUMMARY_WORDS: Final[dict[SummaryLength, int]] = {
    SummaryLength.SHORT:  120,
    SummaryLength.MEDIUM: 250,
    SummaryLength.LONG:   500,
}

# ---------------------------------------------------------------------------
# Instructions
# ---------------------------------------------------------------------------

_JSON_ONLY = "Reply with a single JSON object and nothing else."


def _subject_line(subject: str | None) -> str:
    return f"The material belongs to the subject: {subject.strip()}.\n" if subject and subject.strip() else ""


def summary_instruction(subject: str | None, length: SummaryLength) -> str:
    return (
        "You are a study assistant that writes faithful summaries of course material.\n"
        f"{_subject_line(subject)}"
        f"Summarize the text in about {SUMMARY_WORDS[length]} words. Keep key definitions, "
        "formulas and names; do not invent facts that are not in the text.\n"
        f'{_JSON_ONLY} Shape: {{"text": "<summary>"}}'
    )


def merge_instruction(subject: str | None, length: SummaryLength) -> str:
    return (
        "You are a study assistant. The input is a sequence of partial summaries of one "
        "document, in order.\n"
        f"{_subject_line(subject)}"
        f"Merge them into one coherent summary of about {SUMMARY_WORDS[length]} words, "
        "removing repetition and keeping the original order of topics.\n"
        f'{_JSON_ONLY} Shape: {{"text": "<summary>"}}'
    )


def flashcards_instruction(subject: str | None, n: int) -> str:
    return (
        "You are a study assistant that writes flashcards for active recall.\n"
        f"{_subject_line(subject)}"
        f"Write up to {n} flashcards from the text. Each card has a short question or term "
        "on the front, a precise answer on the back, a difficulty of easy, medium or hard, "
        "and a few lowercase topic tags. Do not repeat cards.\n"
        f'{_JSON_ONLY} Shape: {{"cards": [{{"front": "", "back": "", "difficulty": "medium", "tags": []}}]}}'
    )


def quiz_instruction(subject: str | None, n: int) -> str:
    return (
        "You are a study assistant that writes multiple-choice quizzes.\n"
        f"{_subject_line(subject)}"
        f"Write {n} questions answerable from the text. Each question has exactly 4 options, "
        "exactly one correct option given by its 0-based correct_index, and a one-sentence "
        "explanation. Do not repeat questions.\n"
        f'{_JSON_ONLY} Shape: {{"questions": [{{"question": "", "options": ["", "", "", ""], '
        '"correct_index": 0, "explanation": ""}]}'
    )
