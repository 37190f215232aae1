"""
Chunked summary pipeline.

    pipeline = ChunkedSummaryPipeline(generator, spread)
    summary  = await pipeline.summarize(text, subject="Biology", length=SummaryLength.SHORT)

  text ──► split_fixed(8000) ──► partial #1 ─ pause ─ partial #2 ─ … ─ partial #n
                                                                      │
                                     n > 1:  merge pass over "\n\n".join(partials)
                                     n = 1:  partial #1 is the summary

Without a backend the whole text goes to the local fallback summarizer instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from studyaids.core.errors import UpstreamUnavailable, ValidationFailed
from studyaids.llm.generator import StructuredGenerator
from studyaids.llm.spread import SpreadScheduler
from studyaids.processing.chunking import DEFAULT_CHUNK_CHARS, split_fixed
from studyaids.schemas.study import Summary, SummaryLength
from studyaids.study import fallback
from studyaids.study.prompts import SUMMARY_SCHEMA, merge_instruction, summary_instruction

logger = logging.getLogger(__name__)

SUMMARY_TEMPERATURE = 0.2
PARTIAL_SEPARATOR   = "\n\n"


def _summary_text(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("text", value.get("summary", ""))
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationFailed("The model returned an empty summary.")
    return text


class ChunkedSummaryPipeline:

    def __init__(
        self,
        generator:   StructuredGenerator,
        spread:      SpreadScheduler,
        chunk_chars: int = DEFAULT_CHUNK_CHARS,
        sleep:       Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._generator   = generator
        self._spread      = spread
        self._chunk_chars = chunk_chars
        self._sleep       = sleep

    async def summarize(
        self,
        text:    str,
        subject: str | None = None,
        length:  SummaryLength = SummaryLength.MEDIUM,
    ) -> Summary:
        if not self._generator.configured:
            return self._fallback(text, length)

        slices = split_fixed(text, self._chunk_chars)
        if not slices:
            raise ValidationFailed("No text to summarize.")

        pause_ms = self._spread.pause_between_chunks(len(text), len(slices))
        logger.info(
            "Summary | chars=%d slices=%d pause_ms=%d length=%s",
            len(text), len(slices), pause_ms, length.value,
        )

        instruction = summary_instruction(subject, length)
        partials: list[str] = []
        try:
            for index, piece in enumerate(slices):
                if index > 0 and pause_ms > 0:
                    await self._sleep(pause_ms / 1000)
                value = await self._generator.generate(
                    instruction, piece, SUMMARY_TEMPERATURE, SUMMARY_SCHEMA, "summary",
                )
                partials.append(_summary_text(value))
                logger.debug("Summary | partial %d/%d done", index + 1, len(slices))

            if len(partials) == 1:
                final = partials[0]
            else:
                value = await self._generator.generate(
                    merge_instruction(subject, length),
                    PARTIAL_SEPARATOR.join(partials),
                    SUMMARY_TEMPERATURE,
                    SUMMARY_SCHEMA,
                    "summary",
                )
                final = _summary_text(value)
        except UpstreamUnavailable as exc:
            logger.warning("Summary | upstream unavailable, using local fallback: %s", exc)
            return self._fallback(text, length)

        return Summary(
            text=final,
            length=length,
            chunk_count=len(slices),
            model=self._generator.model,
        )

    def _fallback(self, text: str, length: SummaryLength) -> Summary:
        return Summary(
            text=fallback.build_summary(text, length),
            length=length,
            chunk_count=1,
            degraded=True,
        )
