"""
Flashcard generation: one structured request, then sanitization.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from studyaids.core.errors import UpstreamUnavailable
from studyaids.llm.generator import StructuredGenerator
from studyaids.llm.spread import SpreadScheduler
from studyaids.schemas.study import FlashcardSet
from studyaids.study import fallback
from studyaids.study.prompts import FLASHCARDS_SCHEMA, flashcards_instruction
from studyaids.study.sanitize import sanitize_cards

logger = logging.getLogger(__name__)

DEFAULT_CARD_COUNT    = 12
FLASHCARD_TEMPERATURE = 0.4


class FlashcardBuilder:

    def __init__(
        self,
        generator: StructuredGenerator,
        spread:    SpreadScheduler,
        sleep:     Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._generator = generator
        self._spread    = spread
        self._sleep     = sleep

    async def build(self, text: str, n: int = DEFAULT_CARD_COUNT, subject: str | None = None) -> FlashcardSet:
        if self._generator.configured:
            delay_ms = self._spread.pause_before_request(len(text))
            if delay_ms > 0:
                logger.info("Flashcards | spreading load, pause_ms=%d chars=%d", delay_ms, len(text))
                await self._sleep(delay_ms / 1000)
            try:
                raw = await self._generator.generate(
                    flashcards_instruction(subject, n), text, FLASHCARD_TEMPERATURE,
                    FLASHCARDS_SCHEMA, "flashcards",
                )
            except UpstreamUnavailable as exc:
                logger.warning("Flashcards | upstream unavailable, using local fallback: %s", exc)
            else:
                cards = sanitize_cards(raw, n)
                logger.info("Flashcards | requested=%d kept=%d", n, len(cards))
                return FlashcardSet(cards=cards, model=self._generator.model)

        return FlashcardSet(cards=fallback.build_flashcards(text, n), degraded=True)
