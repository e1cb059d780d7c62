"""Execution records written by external node executors."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional
from uuid import uuid4

from flowgraph.db.connection import transaction, utc_now
from flowgraph.db.edges import assert_node_exists
from flowgraph.db.models import RunRecord


def _row_to_run(row: sqlite3.Row) -> RunRecord:
    return RunRecord(
        run_id=row["run_id"],
        project_id=row["project_id"],
        node_id=row["node_id"],
        started_at=row["started_at"],
        finished_at=row["finished_at"],
        status=row["status"],
        input_hash=row["input_hash"],
        output_hash=row["output_hash"],
        logs=json.loads(row["logs_json"] or "[]"),
    )


def store_run(
    conn: sqlite3.Connection,
    project_id: str,
    node_id: str,
    status: str,
    input_hash: str = "",
    output_hash: str = "",
    logs: Optional[list[Any]] = None,
    started_at: Optional[str] = None,
    finished_at: Optional[str] = None,
    run_id: Optional[str] = None,
) -> RunRecord:
    """Persist one run of a node and return the stored record.

    Raises:
        NotFound: if the node does not exist.
    """
    now = utc_now()
    record = RunRecord(
        run_id=run_id or str(uuid4()),
        project_id=project_id,
        node_id=node_id,
        started_at=started_at or now,
        finished_at=finished_at or now,
        status=status,
        input_hash=input_hash,
        output_hash=output_hash,
        logs=list(logs or []),
    )
    with transaction(conn):
        assert_node_exists(conn, project_id, node_id)
        conn.execute(
            """
            INSERT INTO runs (run_id, project_id, node_id, started_at, finished_at,
                              status, input_hash, output_hash, logs_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.run_id,
                record.project_id,
                record.node_id,
                record.started_at,
                record.finished_at,
                record.status,
                record.input_hash,
                record.output_hash,
                json.dumps(record.logs),
            ),
        )
    return record


def get_node_runs(conn: sqlite3.Connection, project_id: str, node_id: str) -> list[RunRecord]:
    """Runs of a node, newest first."""
    rows = conn.execute(
        """
        SELECT * FROM runs
        WHERE  project_id = ? AND node_id = ?
        ORDER  BY started_at DESC, run_id
        """,
        (project_id, node_id),
    ).fetchall()
    return [_row_to_run(r) for r in rows]
