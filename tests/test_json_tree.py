"""Tests for JSON-tree import and its staggered layout."""

from __future__ import annotations

import json
import sqlite3

import pytest

from flowgraph.db.edges import list_edges
from flowgraph.db.models import Project
from flowgraph.db.nodes import create_node, get_node, list_nodes
from flowgraph.errors import InvalidInput, NotFound
from flowgraph.transformer import import_json_tree
from flowgraph.transformer.json_tree import parse_tree_payload
from flowgraph.transformer.layout import staggered_y

TREE = {
    "nodes": [
        {
            "type": "ai",
            "title": "Root",
            "content": "plan",
            "children": [{"title": "First"}, {"title": "Second", "content": "body"}],
        }
    ]
}


@pytest.fixture()
def anchor(conn: sqlite3.Connection, project: Project) -> str:
    create_node(conn, "p1", {"type": "input", "title": "Anchor", "node_id": "root"})
    return "root"


class TestStaggeredY:
    def test_single_child_stays_level(self) -> None:
        assert staggered_y(100, 0, 1, 3) == 100

    def test_roots_alternate_around_parent(self) -> None:
        assert [staggered_y(0, i, 4, 1) for i in range(4)] == [-50, 250, -250, 450]

    def test_even_levels_shift_down_odd_levels_up(self) -> None:
        assert staggered_y(0, 0, 2, 2) == 70
        assert staggered_y(0, 0, 2, 3) == -170


class TestParsePayload:
    def test_accepts_text_mapping_and_list(self) -> None:
        assert parse_tree_payload(json.dumps(TREE)) == TREE["nodes"]
        assert parse_tree_payload(TREE) == TREE["nodes"]
        assert parse_tree_payload([{"title": "x"}]) == [{"title": "x"}]

    @pytest.mark.parametrize("payload", ["42", "{", {"nodes": "nope"}, 7])
    def test_rejects_other_shapes(self, payload) -> None:
        with pytest.raises(InvalidInput):
            parse_tree_payload(payload)


class TestImport:
    def test_tree_layout_and_wiring(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, TREE)

        assert [n.node_id for n in result.created_nodes] == ["n1_ai", "n2_text", "n3_text"]
        assert [e.to_dict() for e in result.edges] == [
            {"from": "root", "to": "n1_ai"},
            {"from": "n1_ai", "to": "n2_text"},
            {"from": "n1_ai", "to": "n3_text"},
        ]
        root = get_node(conn, "p1", "n1_ai")
        first = get_node(conn, "p1", "n2_text")
        second = get_node(conn, "p1", "n3_text")
        assert (root.ui.bbox.x1, root.ui.bbox.y1) == (500, 0)
        assert root.ui.color == "#8b5cf6"
        assert root.content == "plan"
        assert (first.ui.bbox.x1, first.ui.bbox.y1) == (1000, 70)
        assert (second.ui.bbox.x1, second.ui.bbox.y1) == (1000, 370)
        assert second.ui.color == "#64748b"
        assert second.content == "body"
        assert first.title == "First" and first.type == "text"
        assert len(list_edges(conn, "p1")) == 3

    def test_logs_and_timestamp(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, TREE)
        assert result.logs[0] == "Found 1 root node(s) to create"
        assert result.logs[1] == "Created node: Root (ai) at level 1 in staggered position (500, 0)"
        row = conn.execute("SELECT updated_at FROM projects WHERE project_id = 'p1'").fetchone()
        assert result.project_updated_at == row["updated_at"]

    def test_multiple_roots(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, [{"title": "A"}, {"title": "B"}])
        ys = [get_node(conn, "p1", n.node_id).ui.bbox.y1 for n in result.created_nodes]
        assert ys == [-50, 250]

    def test_explicit_start(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, [{"title": "A"}], start_x=100, start_y=200)
        node = get_node(conn, "p1", result.created_nodes[0].node_id)
        assert (node.ui.bbox.x1, node.ui.bbox.y1) == (600, 200)

    def test_depth_limit(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, TREE, max_depth=1)
        assert [n.node_id for n in result.created_nodes] == ["n1_ai"]

    def test_empty_payload(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, {"nodes": []})
        assert result.created_nodes == []
        assert result.project_updated_at is None

    def test_bad_child_rolls_back(self, conn: sqlite3.Connection, anchor: str) -> None:
        with pytest.raises(InvalidInput):
            import_json_tree(conn, "p1", anchor, [{"title": "r", "children": [5]}])
        assert [n.node_id for n in list_nodes(conn, "p1")] == ["root"]
        assert list_edges(conn, "p1") == []

    def test_missing_anchor(self, conn: sqlite3.Connection, project: Project) -> None:
        with pytest.raises(NotFound):
            import_json_tree(conn, "p1", "ghost", TREE)


class TestGeneratedFieldCoercion:
    def test_structured_content_is_stored_as_json(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(
            conn, "p1", anchor, {"nodes": [{"title": "T", "content": {"k": 1}}, {"title": 7, "content": [1, 2]}]}
        )
        first, second = (get_node(conn, "p1", n.node_id) for n in result.created_nodes)
        assert first.content == '{"k": 1}'
        assert second.title == "7"
        assert second.content == "[1, 2]"

    def test_non_string_type_falls_back_to_text(self, conn: sqlite3.Connection, anchor: str) -> None:
        result = import_json_tree(conn, "p1", anchor, {"nodes": [{"type": ["ai"], "title": "T"}]})
        node = get_node(conn, "p1", result.created_nodes[0].node_id)
        assert node.node_id == "n1_text"
        assert node.type == "text"
        assert node.ui.color == "#64748b"

    def test_malformed_meta_rolls_back(self, conn: sqlite3.Connection, anchor: str) -> None:
        payload = {"nodes": [{"title": "ok"}, {"title": "bad", "meta": ["x"]}]}
        with pytest.raises(InvalidInput):
            import_json_tree(conn, "p1", anchor, payload)
        assert [n.node_id for n in list_nodes(conn, "p1")] == ["root"]
