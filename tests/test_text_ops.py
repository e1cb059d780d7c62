"""Tests for the retain/insert/delete patch engine."""

from __future__ import annotations

import pytest

from flowgraph.errors import InvalidOperation
from flowgraph.text_ops import (
    Delete,
    Insert,
    Retain,
    apply,
    diff,
    normalize_operations,
    operations_to_wire,
    parse_operations,
)


class TestDiff:
    def test_identical_strings(self) -> None:
        assert diff("abc", "abc") == []

    def test_insert_in_middle(self) -> None:
        assert diff("hello world", "hello there world") == [Retain(6), Insert("there "), Retain(5)]

    def test_replace_middle(self) -> None:
        assert diff("abcXYZdef", "abc12def") == [Retain(3), Delete(3), Insert("12"), Retain(3)]

    def test_delete_everything(self) -> None:
        assert diff("abc", "") == [Delete(3)]

    def test_none_is_empty(self) -> None:
        assert diff(None, "x") == [Insert("x")]
        assert diff(None, None) == []

    def test_prefix_and_suffix_do_not_overlap(self) -> None:
        assert diff("aaa", "aa") == [Retain(2), Delete(1)]

    @pytest.mark.parametrize(
        "before, after",
        [
            ("", "new text"),
            ("The quick brown fox", "The slow brown fox"),
            ("abab", "ab"),
            ("line1\nline2\n", "line1\nline1.5\nline2\n"),
            ("ünïcødé", "ünicode"),
        ],
    )
    def test_apply_diff_round_trip(self, before: str, after: str) -> None:
        assert apply(before, diff(before, after)) == after


class TestApply:
    def test_wire_operations(self) -> None:
        ops = [{"retain": 1}, {"insert": "X"}, {"delete": 1}]
        assert apply("abc", ops) == "aXc"

    def test_op_form(self) -> None:
        ops = [{"op": "retain", "count": 2}, {"op": "insert", "text": "!"}]
        assert apply("abc", ops) == "ab!c"

    def test_empty_operations_return_base(self) -> None:
        assert apply("abc", None) == "abc"
        assert apply("abc", []) == "abc"

    def test_unconsumed_tail_is_appended(self) -> None:
        assert apply("abcdef", [Delete(2)]) == "cdef"

    def test_empty_insert_is_noop(self) -> None:
        assert apply("abc", [Insert(""), Retain(3)]) == "abc"

    @pytest.mark.parametrize("ops", [[Retain(4)], [Retain(2), Delete(2)], [Delete(-1)], [Retain(-1)]])
    def test_out_of_bounds(self, ops) -> None:
        with pytest.raises(InvalidOperation):
            apply("abc", ops)

    @pytest.mark.parametrize(
        "raw",
        [[{"bogus": 1}], [{"op": "move", "count": 1}], [{"retain": "2"}], [{"insert": 5}], [7]],
    )
    def test_unknown_shapes(self, raw) -> None:
        with pytest.raises(InvalidOperation):
            apply("abc", raw)


class TestWireHelpers:
    def test_parse_rejects_non_list(self) -> None:
        with pytest.raises(InvalidOperation):
            parse_operations("retain")
        with pytest.raises(InvalidOperation):
            parse_operations({"retain": 1})

    def test_operations_to_wire(self) -> None:
        assert operations_to_wire([Retain(1), Insert("a"), Delete(2)]) == [
            {"retain": 1},
            {"insert": "a"},
            {"delete": 2},
        ]

    def test_normalize_coalesces_and_drops_empty(self) -> None:
        ops = [Retain(1), Retain(2), Insert(""), Insert("a"), Insert("b"), Delete(0), Delete(1)]
        assert normalize_operations(ops) == [Retain(3), Insert("ab"), Delete(1)]
