"""
Multiple-choice quiz generation: one structured request, then sanitization.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from studyaids.core.errors import UpstreamUnavailable
from studyaids.llm.generator import StructuredGenerator
from studyaids.llm.spread import SpreadScheduler
from studyaids.schemas.study import QuizSet
from studyaids.study import fallback
from studyaids.study.prompts import QUIZ_SCHEMA, quiz_instruction
from studyaids.study.sanitize import sanitize_questions

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 10
QUIZ_TEMPERATURE       = 0.3


class QuizBuilder:

    def __init__(
        self,
        generator: StructuredGenerator,
        spread:    SpreadScheduler,
        sleep:     Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._generator = generator
        self._spread    = spread
        self._sleep     = sleep

    async def build(self, text: str, n: int = DEFAULT_QUESTION_COUNT, subject: str | None = None) -> QuizSet:
        if self._generator.configured:
            delay_ms = self._spread.pause_before_request(len(text))
            if delay_ms > 0:
                logger.info("Quiz | spreading load, pause_ms=%d chars=%d", delay_ms, len(text))
                await self._sleep(delay_ms / 1000)
            try:
                raw = await self._generator.generate(
                    quiz_instruction(subject, n), text, QUIZ_TEMPERATURE,
                    QUIZ_SCHEMA, "quiz",
                )
            except UpstreamUnavailable as exc:
                logger.warning("Quiz | upstream unavailable, using local fallback: %s", exc)
            else:
                questions = sanitize_questions(raw, n)
                logger.info("Quiz | requested=%d kept=%d", n, len(questions))
                return QuizSet(questions=questions, model=self._generator.model)

        return QuizSet(questions=fallback.build_quiz(text, n), degraded=True)
