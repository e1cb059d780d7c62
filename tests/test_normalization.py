"""Tests for flowgraph.normalization: pure shape coercion."""

from __future__ import annotations

import math

import pytest

from flowgraph.db.models import BBox, IncomingConnection, NodeUI, OutgoingConnection
from flowgraph.errors import InvalidInput
from flowgraph.normalization import (
    assert_valid_ui,
    default_connections,
    default_ui,
    merge_connections,
    merge_ui,
    normalize_ai_visible,
    normalize_connections,
    normalize_ui,
    round_half_up,
)


class TestNormalizeUi:
    def test_none_gives_default(self) -> None:
        ui = normalize_ui(None)
        assert ui == default_ui()
        assert ui.color == "#6B7280"
        assert (ui.bbox.x1, ui.bbox.y1, ui.bbox.x2, ui.bbox.y2) == (0, 0, 240, 120)

    def test_color_is_trimmed(self) -> None:
        assert normalize_ui({"color": "  #AbC "}).color == "#AbC"

    @pytest.mark.parametrize("color", ["red", "#12345", "#ggg", 42, None])
    def test_invalid_color_falls_back(self, color) -> None:
        assert normalize_ui({"color": color}).color == "#6B7280"

    def test_inverted_bbox_is_repaired(self) -> None:
        ui = normalize_ui({"bbox": {"x1": 10, "y1": 20, "x2": 5, "y2": 20}})
        assert ui.bbox == BBox(10, 20, 250, 140)

    def test_non_numbers_fall_back_per_field(self) -> None:
        ui = normalize_ui({"bbox": {"x1": True, "y1": "3", "x2": math.inf, "y2": 50}})
        assert ui.bbox == BBox(0, 0, 240, 50)

    def test_accepts_dataclass_input(self) -> None:
        ui = normalize_ui(NodeUI(color="#fff", bbox=BBox(1, 2, 3, 4)))
        assert ui == NodeUI(color="#fff", bbox=BBox(1, 2, 3, 4))

    def test_assert_valid_ui_rejects_degenerate_box(self) -> None:
        with pytest.raises(InvalidInput):
            assert_valid_ui(NodeUI(bbox=BBox(5, 5, 5, 10)))


class TestMergeUi:
    def setup_method(self) -> None:
        self.current = NodeUI(color="#123456", bbox=BBox(10, 10, 110, 60))

    def test_none_patch_resets(self) -> None:
        assert merge_ui(self.current, None) == default_ui()

    def test_missing_keys_keep_current(self) -> None:
        assert merge_ui(self.current, {}) == self.current

    def test_color_none_resets_only_color(self) -> None:
        merged = merge_ui(self.current, {"color": None})
        assert merged.color == "#6B7280"
        assert merged.bbox == self.current.bbox

    def test_partial_bbox(self) -> None:
        merged = merge_ui(self.current, {"bbox": {"x2": None, "y1": 20}})
        assert merged.bbox == BBox(10, 20, 240, 60)

    def test_invalid_coordinate_keeps_current(self) -> None:
        merged = merge_ui(self.current, {"bbox": {"x1": "left"}})
        assert merged.bbox.x1 == 10


class TestConnections:
    def test_malformed_entries_are_dropped(self) -> None:
        conns = normalize_connections(
            {
                "incoming": [
                    {"edge_id": " e1 ", "from": " a ", "routing": " in "},
                    {"edge_id": "", "from": "b"},
                    {"edge_id": "e3"},
                    "junk",
                ],
                "outgoing": "not-a-list",
            }
        )
        assert conns.incoming == [IncomingConnection(edge_id="e1", from_node="a", routing="in")]
        assert conns.outgoing == []

    def test_routing_defaults_to_empty(self) -> None:
        conns = normalize_connections({"outgoing": [{"edge_id": "e", "to": "b", "routing": 3}]})
        assert conns.outgoing == [OutgoingConnection(edge_id="e", to_node="b", routing="")]

    def test_merge_keeps_missing_side(self) -> None:
        current = normalize_connections(
            {
                "incoming": [{"edge_id": "e1", "from": "a"}],
                "outgoing": [{"edge_id": "e2", "to": "b"}],
            }
        )
        merged = merge_connections(current, {"outgoing": None})
        assert merged.incoming == current.incoming
        assert merged.outgoing == []

    def test_merge_none_resets(self) -> None:
        current = normalize_connections({"incoming": [{"edge_id": "e1", "from": "a"}]})
        assert merge_connections(current, None) == default_connections()

    def test_to_dict_uses_wire_keys(self) -> None:
        conns = normalize_connections({"incoming": [{"edge_id": "e1", "from": "a"}]})
        assert conns.to_dict() == {
            "incoming": [{"edge_id": "e1", "from": "a", "routing": ""}],
            "outgoing": [],
        }


class TestScalars:
    @pytest.mark.parametrize(
        "value, expected",
        [(True, True), (False, False), (0, False), (2.5, True), ("no", True), (None, True)],
    )
    def test_normalize_ai_visible(self, value, expected) -> None:
        assert normalize_ai_visible(value) is expected

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(-0.5) == 0
        assert round_half_up(-1.6) == -2
