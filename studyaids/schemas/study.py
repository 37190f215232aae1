"""
Study Aid Artifacts — Pydantic response schemas

GeneratedArtifact is a tagged union on `kind`:

    Summary       { text }
    FlashcardSet  { cards: [Card] }
    QuizSet       { questions: [Question] }

Every artifact records whether it came from the LLM (`degraded=False`) or
from the local fallback generators (`degraded=True`), so the UI can label
demo output.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_serializer


class Difficulty(str, Enum):
    EASY   = "easy"
    MEDIUM = "medium"
    HARD   = "hard"


class SummaryLength(str, Enum):
    SHORT  = "short"
    MEDIUM = "medium"
    LONG   = "long"


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class Card(BaseModel):
    front:      str
    back:       str
    difficulty: Difficulty = Difficulty.MEDIUM
    tags:       set[str]   = Field(default_factory=set)

    @field_serializer("tags")
    def _sorted_tags(self, tags: set[str]) -> list[str]:
        return sorted(tags)


class Question(BaseModel):
    question:      str
    options:       list[str] = Field(..., min_length=4, max_length=4)
    correct_index: int       = Field(..., ge=0, le=3)
    explanation:   str       = ""


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

class Summary(BaseModel):
    kind:        Literal["summary"] = "summary"
    text:        str
    length:      SummaryLength = SummaryLength.MEDIUM
    chunk_count: int  = 1
    degraded:    bool = False
    model:       str | None = None


class FlashcardSet(BaseModel):
    kind:     Literal["flashcards"] = "flashcards"
    cards:    list[Card]
    degraded: bool = False
    model:    str | None = None

    @property
    def count(self) -> int:
        return len(self.cards)


class QuizSet(BaseModel):
    kind:      Literal["quiz"] = "quiz"
    questions: list[Question]
    degraded:  bool = False
    model:     str | None = None

    @property
    def count(self) -> int:
        return len(self.questions)


GeneratedArtifact = Annotated[
    Union[Summary, FlashcardSet, QuizSet],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------

class ExtractResponse(BaseModel):
    ok:         bool = True
    chars:      int
    text:       str
    strategy:   str
    used_ocr:   bool
    page_count: int


class ArtifactResponse(BaseModel):
    """Envelope for /summary, /flashcards and /quiz."""
    ok:            bool = True
    source_chars:  int  = Field(..., description="Characters extracted from the PDF")
    truncated:     bool = Field(False, description="True if the text was cut to max_input_chars")
    artifact:      GeneratedArtifact
