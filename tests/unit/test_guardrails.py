"""
tests/unit/test_guardrails.py — Unit tests for pipeline/guardrails.py

Covers: validate_query(), validate_history(),
        deduplicate_queries().
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from pipeline.guardrails import (
    MAX_QUERY_LENGTH,
    deduplicate_queries,
    validate_history,
    validate_query,
)


# ── validate_query ────────────────────────────────────────────────────────────

class TestValidateQuery:
    def test_valid_query_returned(self):
        assert validate_query("climate change") == "climate change"

    def test_single_word_allowed(self):
        assert validate_query("apple") == "apple"

    def test_strips_leading_trailing_whitespace(self):
        assert validate_query("  climate change  ") == "climate change"

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="empty"):
            validate_query("")

    def test_whitespace_only_raises(self):
        with pytest.raises(ValueError, match="empty"):
            validate_query("   ")

    def test_too_long_raises(self):
        with pytest.raises(ValueError, match="too long"):
            validate_query("x" * (MAX_QUERY_LENGTH + 1))

    def test_exactly_max_length_passes(self):
        query = "x" * MAX_QUERY_LENGTH
        assert validate_query(query) == query

    def test_non_string_raises(self):
        with pytest.raises(ValueError, match="string"):
            validate_query(None)


# ── validate_history ──────────────────────────────────────────────────────────

class TestValidateHistory:
    def test_valid_history_returned(self):
        history = [
            {"role": "system", "content": "You summarize."},
            {"role": "user", "content": "climate change"},
            {"role": "assistant", "content": "Summary."},
        ]
        assert validate_history(history) == history

    def test_extra_keys_dropped(self):
        history = [{"role": "user", "content": "hi", "name": "x"}]
        assert validate_history(history) == [{"role": "user", "content": "hi"}]

    def test_empty_history_allowed(self):
        assert validate_history([]) == []

    def test_not_a_list_raises(self):
        with pytest.raises(ValueError, match="list"):
            validate_history({"role": "user", "content": "hi"})

    def test_bad_role_raises(self):
        with pytest.raises(ValueError, match="item 1 has invalid role"):
            validate_history([
                {"role": "user", "content": "a"},
                {"role": "tool", "content": "b"},
            ])

    def test_empty_content_raises(self):
        with pytest.raises(ValueError, match="content"):
            validate_history([{"role": "user", "content": ""}])

    def test_non_dict_item_raises(self):
        with pytest.raises(ValueError, match="item 0"):
            validate_history(["hello"])


# ── deduplicate_queries ───────────────────────────────────────────────────────

class TestDeduplicateQueries:
    def test_removes_case_and_whitespace_duplicates(self):
        assert deduplicate_queries(["Climate change", "climate  change", "global warming"]) == [
            "Climate change",
            "global warming",
        ]

    def test_preserves_order(self):
        assert deduplicate_queries(["b", "a", "b"]) == ["b", "a"]

    def test_drops_blank(self):
        assert deduplicate_queries(["", "  ", "a"]) == ["a"]
