"""Unit tests for kbchat/core/prompt.py."""

import pytest

from kbchat.core.prompt import SOURCES_MARKER, build_answer_prompt, build_answer_request


class TestBuildAnswerPrompt:
    def test_contains_question(self):
        prompt = build_answer_prompt("What is the warranty period?")
        assert prompt.endswith("User's question: What is the warranty period?")

    def test_requests_trailing_sources_line(self):
        prompt = build_answer_prompt("q")
        assert SOURCES_MARKER + '{"sources":[]}' in prompt
        assert '{"fileName":"<basename>","page":<pageNumber>}' in prompt
        assert "Only one SOURCES_JSON line" in prompt

    def test_answer_only_from_documents(self):
        prompt = build_answer_prompt("q")
        assert "ONLY" in prompt
        assert "I don't have that information in our company records" in prompt

    def test_blank_question_rejected(self):
        with pytest.raises(ValueError):
            build_answer_prompt("   ")


class TestBuildAnswerRequest:
    def test_scoped_to_vector_store(self):
        payload = build_answer_request("q", "vs_abc", "gpt-4o-mini")
        assert payload["model"] == "gpt-4o-mini"
        assert payload["tools"] == [
            {"type": "file_search", "vector_store_ids": ["vs_abc"]},
        ]
        assert payload["input"].endswith("User's question: q")

    def test_missing_vector_store_rejected(self):
        with pytest.raises(ValueError):
            build_answer_request("q", "", "gpt-4o-mini")
