"""Tests for run and asset records."""

from __future__ import annotations

import sqlite3

import pytest

from flowgraph.db.assets import create_asset, list_node_assets
from flowgraph.db.models import Project
from flowgraph.db.nodes import create_node
from flowgraph.db.runs import get_node_runs, store_run
from flowgraph.errors import NotFound


def test_runs_newest_first(conn: sqlite3.Connection, project: Project) -> None:
    create_node(conn, "p1", {"type": "ai", "title": "A", "node_id": "a"})
    store_run(conn, "p1", "a", "ok", started_at="2030-01-01T00:00:00+00:00", logs=["one"])
    store_run(conn, "p1", "a", "error", started_at="2030-01-02T00:00:00+00:00", input_hash="h")

    runs = get_node_runs(conn, "p1", "a")

    assert [r.status for r in runs] == ["error", "ok"]
    assert runs[0].input_hash == "h"
    assert runs[1].logs == ["one"]


def test_assets_per_node(conn: sqlite3.Connection, project: Project) -> None:
    create_node(conn, "p1", {"type": "image", "title": "I", "node_id": "img"})
    asset = create_asset(conn, "p1", "assets/img.png", node_id="img", meta={"mime": "image/png"})
    create_asset(conn, "p1", "assets/loose.txt")

    assets = list_node_assets(conn, "p1", "img")

    assert assets == [asset]
    assert assets[0].meta == {"mime": "image/png"}


def test_run_for_missing_node(conn: sqlite3.Connection, project: Project) -> None:
    with pytest.raises(NotFound):
        store_run(conn, "p1", "ghost", "ok")
    assert conn.execute("SELECT COUNT(*) FROM runs").fetchone()[0] == 0


def test_asset_for_missing_node(conn: sqlite3.Connection, project: Project) -> None:
    with pytest.raises(NotFound):
        create_asset(conn, "p1", "assets/ghost.png", node_id="ghost")
    assert conn.execute("SELECT COUNT(*) FROM assets").fetchone()[0] == 0
