"""
Unit Tests — ChunkedSummaryPipeline
═══════════════════════════════════
Coverage targets:
  ✅ 20 000 chars / 8 000-char slices → 3 partial calls + 1 merge call
  ✅ 5 000 chars → exactly 1 call, no merge
  ✅ Pauses only between slices, never before the first
  ✅ Merge pass receives the partials joined by a blank line
  ✅ No backend → local fallback summary, degraded=True
  ✅ Empty model summary → ValidationFailed
"""

from __future__ import annotations

import pytest

from studyaids.core.errors import ValidationFailed
from studyaids.llm.backend import SchemaParsed
from studyaids.llm.spread import SpreadScheduler
from studyaids.processing.chunking import split_fixed
from studyaids.schemas.study import SummaryLength
from studyaids.study.summary import ChunkedSummaryPipeline
from tests.conftest import ScriptedBackend


def _numbered_backend() -> ScriptedBackend:
    counter = {"n": 0}

    def reply(call):
        counter["n"] += 1
        return SchemaParsed({"text": f"part {counter['n']}"})

    return ScriptedBackend(default=reply)


def _pipeline(make_generator, fake_clock, backend, chunk_pause_ms: int = 1_200) -> ChunkedSummaryPipeline:
    return ChunkedSummaryPipeline(
        make_generator(backend),
        SpreadScheduler(enabled=False, chunk_pause_ms=chunk_pause_ms),
        chunk_chars=8_000,
        sleep=fake_clock.sleep,
    )


@pytest.mark.unit
class TestChunkedSummary:

    async def test_three_slices_plus_merge(self, make_generator, fake_clock):
        backend = _numbered_backend()
        pipeline = _pipeline(make_generator, fake_clock, backend)

        summary = await pipeline.summarize("x" * 20_000, subject="Biology", length=SummaryLength.SHORT)

        assert len(backend.calls) == 4
        assert [len(c.user_prompt) for c in backend.calls[:3]] == [8_000, 8_000, 4_000]
        assert backend.calls[3].user_prompt == "part 1\n\npart 2\n\npart 3"
        assert "Merge" in backend.calls[3].system_prompt
        assert summary.text == "part 4"
        assert summary.chunk_count == 3
        assert summary.length == SummaryLength.SHORT
        assert summary.degraded is False
        assert summary.model == "test-model"

    async def test_single_slice_skips_merge(self, make_generator, fake_clock):
        backend = _numbered_backend()
        summary = await _pipeline(make_generator, fake_clock, backend).summarize("y" * 5_000)

        assert len(backend.calls) == 1
        assert summary.text == "part 1"
        assert summary.chunk_count == 1
        assert fake_clock.sleeps == []

    async def test_pauses_between_slices_never_before_first(self, make_generator, fake_clock):
        backend = _numbered_backend()
        await _pipeline(make_generator, fake_clock, backend, chunk_pause_ms=1_200).summarize("z" * 20_000)

        assert fake_clock.sleeps == [pytest.approx(1.2), pytest.approx(1.2)]

    async def test_subject_reaches_the_prompt(self, make_generator, fake_clock):
        backend = _numbered_backend()
        await _pipeline(make_generator, fake_clock, backend).summarize("short text", subject="Organic Chemistry")
        assert "Organic Chemistry" in backend.calls[0].system_prompt

    async def test_empty_model_summary_is_rejected(self, make_generator, fake_clock):
        backend = ScriptedBackend([SchemaParsed({"text": "   "})])
        with pytest.raises(ValidationFailed):
            await _pipeline(make_generator, fake_clock, backend).summarize("some text")


@pytest.mark.unit
class TestFallbackSummary:

    async def test_no_backend_uses_leading_sentences(self, make_generator, fake_clock, study_text):
        summary = await _pipeline(make_generator, fake_clock, None).summarize(study_text, length=SummaryLength.SHORT)

        assert summary.degraded is True
        assert summary.model is None
        assert summary.text.startswith("Photosynthesis converts light energy")
        assert summary.text.count(".") == 3


@pytest.mark.unit
class TestSplitFixed:

    def test_slices_are_contiguous(self):
        text = "abcdefghij" * 3
        slices = split_fixed(text, 8)
        assert [len(s) for s in slices] == [8, 8, 8, 6]
        assert "".join(slices) == text

    def test_empty_text(self):
        assert split_fixed("", 8) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            split_fixed("abc", 0)
