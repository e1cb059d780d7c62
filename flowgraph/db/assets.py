"""File assets attached to projects and, optionally, to a node."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional
from uuid import uuid4

from flowgraph.db.connection import transaction, utc_now
from flowgraph.db.edges import assert_node_exists
from flowgraph.db.models import AssetRecord


def _row_to_asset(row: sqlite3.Row) -> AssetRecord:
    return AssetRecord(
        asset_id=row["asset_id"],
        project_id=row["project_id"],
        node_id=row["node_id"],
        path=row["path"],
        meta=json.loads(row["meta_json"] or "{}"),
        created_at=row["created_at"],
    )


def create_asset(
    conn: sqlite3.Connection,
    project_id: str,
    path: str,
    node_id: Optional[str] = None,
    meta: Optional[dict[str, Any]] = None,
    asset_id: Optional[str] = None,
) -> AssetRecord:
    """Register an asset file.  *path* is relative to the workspace.

    Raises:
        NotFound: if *node_id* is given and that node does not exist.
    """
    record = AssetRecord(
        asset_id=asset_id or str(uuid4()),
        project_id=project_id,
        node_id=node_id,
        path=path,
        meta=dict(meta or {}),
        created_at=utc_now(),
    )
    with transaction(conn):
        if node_id is not None:
            assert_node_exists(conn, project_id, node_id)
        conn.execute(
            """
            INSERT INTO assets (asset_id, project_id, node_id, path, meta_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.asset_id,
                record.project_id,
                record.node_id,
                record.path,
                json.dumps(record.meta),
                record.created_at,
            ),
        )
    return record


def list_node_assets(conn: sqlite3.Connection, project_id: str, node_id: str) -> list[AssetRecord]:
    rows = conn.execute(
        "SELECT * FROM assets WHERE project_id = ? AND node_id = ? ORDER BY created_at",
        (project_id, node_id),
    ).fetchall()
    return [_row_to_asset(r) for r in rows]
