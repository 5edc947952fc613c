"""Tests for the helper utilities."""

from datetime import datetime, timedelta

import pytest

from concord.utils.helpers import (
    calculate_text_similarity,
    clamp,
    generate_id,
    is_number,
    merge_dicts,
    minutes_between,
    serialize_payload,
    short_id,
    token_set,
    top_counts,
    truncate_text
)


class TestIdentifiers:

    def test_generate_id_prefix(self):
        identifier = generate_id("ctx")

        assert identifier.startswith("ctx_")
        assert len(identifier) == len("ctx_") + 36
        assert generate_id("ctx") != identifier

    def test_short_id(self):
        assert short_id("handoff_0123456789abcdef") == "handoff_01234567"
        assert short_id("0123456789abcdef") == "01234567"


class TestSimilarity:

    def test_serialization_is_key_order_independent(self):
        assert serialize_payload({"b": 1, "a": 2}) == serialize_payload({"a": 2, "b": 1})
        assert serialize_payload("raw") == "raw"

    def test_tokens_are_lowercased(self):
        assert token_set({"Topic": "Seed Round"}) == {"topic", "seed", "round"}

    @pytest.mark.parametrize("left,right,expected", [
        ("seed round", "seed round", 1.0),
        ("seed round", "series a", 0.0),
        ("seed funding round", "seed round", 2 / 3),
        ("", "", 1.0),
        ("", "seed", 0.0),
    ])
    def test_jaccard(self, left, right, expected):
        assert calculate_text_similarity(left, right) == pytest.approx(expected)


class TestNumbers:

    def test_is_number_excludes_bool(self):
        assert is_number(3)
        assert is_number(0.5)
        assert not is_number(True)
        assert not is_number("3")

    def test_clamp(self):
        assert clamp(1.7) == 1.0
        assert clamp(-0.2) == 0.0
        assert clamp(5, 0, 10) == 5


class TestMisc:

    def test_truncate_text(self):
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a" * 20, 10) == "a" * 7 + "..."

    def test_merge_dicts(self):
        assert merge_dicts({"a": 1, "b": 1}, None, {"b": 2}) == {"a": 1, "b": 2}

    def test_top_counts(self):
        assert top_counts(["x", "y", "x", "z"], 2) == [("x", 2), ("y", 1)]

    def test_minutes_between(self):
        start = datetime(2024, 1, 1, 12, 0)
        assert minutes_between(start, start + timedelta(minutes=90)) == 90.0
