"""
Local fallback generators — used when no LLM backend is configured.

Deterministic heuristics over the extracted text, good enough for a demo and
for exercising the UI without an API key:

  summary     leading sentences, count set by the requested length
  flashcards  most frequent long words + the first sentence that uses them,
              then plain sentence cards if the document is short on terms
  quiz        seeded sample of sentences turned into fill-in-the-blank stems

No queue, no rate gate, no network. Output is flagged degraded=True by the
callers.
"""

from __future__ import annotations

import hashlib
import random
import re
from collections import Counter

from studyaids.core.errors import ValidationFailed
from studyaids.schemas.study import Card, Difficulty, Question, SummaryLength
from studyaids.study.sanitize import normalize_key

MIN_TERM_LEN      = 7
MIN_SENTENCE_LEN  = 20
CARD_FRONT_CHARS  = 80
CONTEXT_CHARS     = 240

_SENTENCE_SPLIT_RE = re.compile(r"\n+|(?<=[.!?])\s+")
_TERM_RE           = re.compile(rf"[^\W\d_]{{{MIN_TERM_LEN},}}")
_WORD_RE           = re.compile(r"[^\W\d_]{4,}")

_SUMMARY_SENTENCES = {
    SummaryLength.SHORT:  3,
    SummaryLength.MEDIUM: 6,
    SummaryLength.LONG:   10,
}

# Frequent long words that make useless flashcards
_STOPWORDS = frozenset({
    "although", "another", "because", "between", "therefore", "however",
    "through", "without", "whether", "against", "several", "example",
    "including", "following", "different", "something", "perhaps",
})

_GENERIC_DISTRACTORS = ("None of the above", "All of the above", "Not stated in the text")


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s and s.strip()]


def _require_text(text: str) -> str:
    stripped = (text or "").strip()
    if not stripped:
        raise ValidationFailed("No text to generate study material from.")
    return stripped


def _seeded_rng(text: str) -> random.Random:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


def _ranked_terms(text: str) -> list[tuple[str, int]]:
    """(display form, count) ordered by frequency, then first appearance."""
    counts: Counter[str] = Counter()
    display: dict[str, str] = {}
    first_seen: dict[str, int] = {}
    for idx, match in enumerate(_TERM_RE.finditer(text)):
        key = match.group(0).casefold()
        if key in _STOPWORDS:
            continue
        counts[key] += 1
        display.setdefault(key, match.group(0))
        first_seen.setdefault(key, idx)
    ranked = sorted(counts, key=lambda k: (-counts[k], first_seen[k]))
    return [(display[k], counts[k]) for k in ranked]


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit].rstrip() + "…"


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def build_summary(text: str, length: SummaryLength = SummaryLength.MEDIUM) -> str:
    text = _require_text(text)
    sentences = [s for s in split_sentences(text) if len(s) > MIN_SENTENCE_LEN]
    if not sentences:
        return _clip(" ".join(text.split()), 600)
    return " ".join(sentences[: _SUMMARY_SENTENCES[length]])


# ---------------------------------------------------------------------------
# Flashcards
# ---------------------------------------------------------------------------

def build_flashcards(text: str, n: int = 12) -> list[Card]:
    text = _require_text(text)
    n = max(1, n)
    sentences = split_sentences(text)
    cards: list[Card] = []
    seen: set[str] = set()

    for term, count in _ranked_terms(text)[:n]:
        context = next((s for s in sentences if term.casefold() in s.casefold()), "")
        back = f"Key term of the document, mentioned {count} time{'s' if count != 1 else ''}."
        if context:
            back += f" Context: {_clip(context, CONTEXT_CHARS)}"
        cards.append(Card(front=term, back=back, difficulty=Difficulty.MEDIUM, tags={"key-term"}))
        seen.add(normalize_key(term))

    for sentence in sentences:
        if len(cards) >= n:
            break
        if len(sentence) <= MIN_SENTENCE_LEN:
            continue
        front = _clip(sentence, CARD_FRONT_CHARS)
        if normalize_key(front) in seen:
            continue
        seen.add(normalize_key(front))
        cards.append(Card(front=front, back=sentence, difficulty=Difficulty.MEDIUM))

    if not cards:
        cards.append(Card(front=_clip(text, CARD_FRONT_CHARS), back=text, difficulty=Difficulty.MEDIUM))
    return cards


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

def _options(answer: str, pool: list[str], rng: random.Random) -> tuple[list[str], int]:
    taken = {answer.casefold()}
    distractors: list[str] = []
    for word in rng.sample(pool, len(pool)):
        if len(distractors) == 3:
            break
        if word.casefold() not in taken:
            taken.add(word.casefold())
            distractors.append(word)
    for generic in _GENERIC_DISTRACTORS:
        if len(distractors) == 3:
            break
        if generic.casefold() not in taken:
            taken.add(generic.casefold())
            distractors.append(generic)

    options = distractors + [answer]
    rng.shuffle(options)
    return options, options.index(answer)


def build_quiz(text: str, n: int = 10) -> list[Question]:
    text = _require_text(text)
    n = max(1, n)
    rng = _seeded_rng(text)

    vocabulary = [term for term, _ in _ranked_terms(text)]
    candidates = [
        (i, s) for i, s in enumerate(split_sentences(text))
        if 40 <= len(s) <= 300 and _TERM_RE.search(s)
    ]
    picked = sorted(rng.sample(candidates, min(n, len(candidates))))

    questions: list[Question] = []
    for _, sentence in picked:
        answer = max(_TERM_RE.findall(sentence), key=len)
        stem = sentence.replace(answer, "_____", 1)
        options, correct = _options(answer, [w for w in vocabulary if w != answer], rng)
        questions.append(Question(
            question=f"Fill in the blank: {stem}",
            options=options,
            correct_index=correct,
            explanation=f"The original sentence reads: {_clip(sentence, CONTEXT_CHARS)}",
        ))

    if not questions:
        words = _WORD_RE.findall(text)
        answer = words[0] if words else _clip(text, 40)
        options, correct = _options(answer, words[1:], rng)
        questions.append(Question(
            question="Which of these words appears in the document?",
            options=options,
            correct_index=correct,
            explanation=f"'{answer}' is taken from the document text.",
        ))
    return questions
