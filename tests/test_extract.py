"""
Tests for resilient structured insight extraction.
"""

import pytest

from insight_distil.core.extract import ExtractionError, extract_insight, find_json_candidate, strip_code_fence


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence_untouched(self):
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_missing_closing_fence(self):
        assert strip_code_fence('```json\n{"a": 1}') == '{"a": 1}'


class TestExtractInsight:
    """Test extraction from noisy model output."""

    def test_fenced_json(self):
        text = '```json\n{"summary":"x","questions":["a","b"]}\n```'
        insight = extract_insight(text)
        assert insight.summary == "x"
        assert insight.questions == ["a", "b"]

    def test_trailing_prose(self):
        insight = extract_insight('{"summary":"s","questions":[]} -- end of response')
        assert insight.summary == "s"
        assert insight.questions == []

    def test_leading_prose_and_whitespace(self):
        text = '\n\n  Sure! Here is your insight:\n{"summary": "Work feels heavy.", "questions": ["What changed?"]}\n  '
        insight = extract_insight(text)
        assert insight.summary == "Work feels heavy."
        assert insight.questions == ["What changed?"]

    def test_nested_braces_inside_summary(self):
        text = '{"summary": "Sections: {what you want}", "questions": ["q"]}'
        assert extract_insight(text).summary == "Sections: {what you want}"

    def test_extra_fields_are_ignored(self):
        insight = extract_insight('{"summary": "s", "questions": ["q"], "mood": "tired"}')
        assert insight.questions == ["q"]

    def test_no_json_object(self):
        with pytest.raises(ExtractionError, match="No JSON object"):
            extract_insight("I could not come up with anything useful today.")

    def test_empty_text(self):
        with pytest.raises(ExtractionError):
            extract_insight("")

    def test_missing_questions(self):
        with pytest.raises(ExtractionError, match="questions"):
            extract_insight('{"summary": "only a summary"}')

    def test_missing_summary(self):
        with pytest.raises(ExtractionError, match="summary"):
            extract_insight('{"questions": ["q"]}')

    def test_scalar_questions(self):
        with pytest.raises(ExtractionError):
            extract_insight('{"summary": "s", "questions": "why?"}')

    def test_non_string_question(self):
        with pytest.raises(ExtractionError):
            extract_insight('{"summary": "s", "questions": ["why?", 42]}')

    def test_non_string_summary(self):
        with pytest.raises(ExtractionError):
            extract_insight('{"summary": ["s"], "questions": []}')

    def test_blank_summary(self):
        with pytest.raises(ExtractionError):
            extract_insight('{"summary": "   ", "questions": []}')

    def test_malformed_json_is_not_repaired(self):
        with pytest.raises(ExtractionError, match="Failed to parse"):
            extract_insight('{"summary": "s", "questions": ["a",]}')

    def test_trailing_brace_in_prose_fails(self):
        """The greedy scan runs to the last '}', so stray braces after the object break parsing."""
        with pytest.raises(ExtractionError):
            extract_insight('{"summary": "s", "questions": []} and then {this}')

    def test_find_json_candidate_is_greedy(self):
        assert find_json_candidate('pre {"a": {"b": 1}} post') == '{"a": {"b": 1}}'
