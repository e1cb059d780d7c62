"""Tests for node cloning."""

from __future__ import annotations

import sqlite3

import pytest

from flowgraph.db.edges import create_edge, list_edges
from flowgraph.db.models import Project
from flowgraph.db.nodes import clone_node, create_node, get_node, list_nodes
from flowgraph.errors import NotFound


def _add(conn: sqlite3.Connection, node_id: str, **fields) -> None:
    create_node(conn, "p1", {"type": "text", "title": node_id.upper(), "node_id": node_id, **fields})


def _edge_ids(conn: sqlite3.Connection) -> set[str]:
    return {e.edge_id for e in list_edges(conn, "p1")}


@pytest.fixture()
def chain(conn: sqlite3.Connection, project: Project) -> sqlite3.Connection:
    """a -> b -> c"""
    _add(conn, "a", content="alpha", meta={"k": 1}, ai={"model": "m"})
    _add(conn, "b")
    _add(conn, "c")
    create_edge(conn, "p1", "a", "b", label="next", source_handle="out")
    create_edge(conn, "p1", "b", "c")
    return conn


class TestCloneNode:
    def test_copies_fields_and_outgoing_edges(self, chain: sqlite3.Connection) -> None:
        clone = clone_node(chain, "p1", "a")

        assert clone.node_id == "a_clone_001"
        assert clone.title == "A (clone)"
        assert clone.content == "alpha"
        assert clone.meta == {"k": 1}
        assert clone.config == {"ai": {"model": "m"}}
        copied = [e for e in list_edges(chain, "p1") if e.from_node == "a_clone_001"]
        assert len(copied) == 1
        assert (copied[0].to_node, copied[0].label, copied[0].source_handle) == ("b", "next", "out")

    def test_never_mutates_source(self, chain: sqlite3.Connection) -> None:
        before = get_node(chain, "p1", "a")
        clone_node(chain, "p1", "a", include_subtree=True)
        assert get_node(chain, "p1", "a") == before

    def test_counter_increments(self, chain: sqlite3.Connection) -> None:
        clone_node(chain, "p1", "a")
        assert clone_node(chain, "p1", "a").node_id == "a_clone_002"

    def test_subtree_without_children_equals_plain_clone(self, chain: sqlite3.Connection) -> None:
        clone = clone_node(chain, "p1", "c", include_subtree=True)
        assert clone.node_id == "c_clone_001"
        assert len(list_nodes(chain, "p1")) == 4

    def test_subtree_clones_one_level_by_default(self, chain: sqlite3.Connection) -> None:
        clone_node(chain, "p1", "a", include_subtree=True)

        ids = {n.node_id for n in list_nodes(chain, "p1")}
        assert ids == {"a", "b", "c", "a_clone_001", "b_clone_001"}
        assert {"a_clone_001:out->b", "a_clone_001->b_clone_001", "b_clone_001->c"} <= _edge_ids(chain)

    def test_max_depth_reaches_grandchildren(self, chain: sqlite3.Connection) -> None:
        clone_node(chain, "p1", "a", include_subtree=True, max_depth=2)

        ids = {n.node_id for n in list_nodes(chain, "p1")}
        assert "c_clone_001" in ids
        assert "b_clone_001->c_clone_001" in _edge_ids(chain)

    def test_cycles_clone_each_node_once(self, chain: sqlite3.Connection) -> None:
        create_edge(chain, "p1", "b", "a")
        clone_node(chain, "p1", "a", include_subtree=True, max_depth=5)

        ids = {n.node_id for n in list_nodes(chain, "p1")}
        assert ids == {"a", "b", "c", "a_clone_001", "b_clone_001", "c_clone_001"}
        assert "b_clone_001->a_clone_001" in _edge_ids(chain)

    def test_missing_source(self, conn: sqlite3.Connection, project: Project) -> None:
        with pytest.raises(NotFound):
            clone_node(conn, "p1", "ghost")
