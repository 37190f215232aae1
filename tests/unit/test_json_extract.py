"""
Unit Tests — tolerant JSON extraction
"""

from __future__ import annotations

import pytest

from studyaids.llm.json_extract import JSONExtractionError, extract_json, strip_code_fence


@pytest.mark.unit
class TestExtractJSON:

    def test_plain_json(self):
        assert extract_json('{"cards": []}') == {"cards": []}

    def test_json_fence(self):
        text = 'Here you go:\n```json\n{"text": "summary"}\n```\nEnjoy!'
        assert extract_json(text) == {"text": "summary"}

    def test_labelled_fence_preferred_over_unlabelled(self):
        text = "```\nnot json\n```\nand\n```json\n[1, 2]\n```"
        assert extract_json(text) == [1, 2]

    def test_unlabelled_fence(self):
        assert extract_json("```\n{\"a\": 1}\n```") == {"a": 1}

    def test_prose_around_object(self):
        text = 'Sure! {"questions": [{"question": "Q?"}]} Hope this helps.'
        assert extract_json(text) == {"questions": [{"question": "Q?"}]}

    def test_prose_around_array(self):
        assert extract_json("The list is [1, 2, 3] as requested") == [1, 2, 3]

    def test_no_json_raises(self):
        with pytest.raises(JSONExtractionError, match="no JSON found"):
            extract_json("I cannot help with that.")

    def test_truncated_json_raises(self):
        with pytest.raises(JSONExtractionError):
            extract_json('{"cards": [{"front": "a"')

    def test_empty_text_raises(self):
        with pytest.raises(JSONExtractionError):
            extract_json("")


@pytest.mark.unit
class TestStripCodeFence:

    def test_without_fence_returns_input(self):
        assert strip_code_fence("plain") == "plain"

    def test_fence_body_is_stripped(self):
        assert strip_code_fence("```json\n  {}  \n```") == "{}"
