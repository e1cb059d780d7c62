"""Operations on the ``edges`` table.

Edges are the single source of truth for graph structure.  A node's
``connections`` view is never stored; :func:`connections_for` derives it from
this table whenever nodes are read.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from flowgraph.db.connection import touch_project, transaction
from flowgraph.db.models import (
    Edge,
    EdgeWriteResult,
    IncomingConnection,
    NodeConnections,
    Notification,
    OutgoingConnection,
    ProjectSnapshotProvider,
)
from flowgraph.errors import NotFound

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_edge(row: sqlite3.Row) -> Edge:
    return Edge(
        project_id=row["project_id"],
        from_node=row["from_node"],
        to_node=row["to_node"],
        label=row["label"],
        source_handle=row["source_handle"],
        target_handle=row["target_handle"],
    )


def _clean_handle(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def assert_node_exists(conn: sqlite3.Connection, project_id: str, node_id: str) -> None:
    row = conn.execute(
        "SELECT 1 FROM nodes WHERE project_id = ? AND node_id = ?",
        (project_id, node_id),
    ).fetchone()
    if row is None:
        raise NotFound(f"Node {node_id} not found in project {project_id}")


def _find_edge(
    conn: sqlite3.Connection,
    project_id: str,
    from_node: str,
    to_node: str,
    source_handle: Optional[str],
    target_handle: Optional[str],
) -> Optional[Edge]:
    row = conn.execute(
        """
        SELECT * FROM edges
        WHERE  project_id = ? AND from_node = ? AND to_node = ?
          AND  COALESCE(source_handle, '') = COALESCE(?, '')
          AND  COALESCE(target_handle, '') = COALESCE(?, '')
        """,
        (project_id, from_node, to_node, source_handle, target_handle),
    ).fetchone()
    return _row_to_edge(row) if row else None


# ---------------------------------------------------------------------------
# Read accessors
# ---------------------------------------------------------------------------

def list_edges(conn: sqlite3.Connection, project_id: str) -> list[Edge]:
    """Return every edge of a project in a stable order."""
    rows = conn.execute(
        """
        SELECT * FROM edges
        WHERE  project_id = ?
        ORDER  BY from_node, to_node, COALESCE(source_handle, ''), COALESCE(target_handle, '')
        """,
        (project_id,),
    ).fetchall()
    return [_row_to_edge(r) for r in rows]


def get_node_edges(conn: sqlite3.Connection, project_id: str, node_id: str) -> list[Edge]:
    """Return all edges where *node_id* is the source **or** the target."""
    rows = conn.execute(
        """
        SELECT * FROM edges
        WHERE  project_id = ? AND (from_node = ? OR to_node = ?)
        ORDER  BY from_node, to_node
        """,
        (project_id, node_id, node_id),
    ).fetchall()
    return [_row_to_edge(r) for r in rows]


def connections_for(
    conn: sqlite3.Connection,
    project_id: str,
    node_ids: Optional[Iterable[str]] = None,
) -> dict[str, NodeConnections]:
    """Derive the connections view for *node_ids* (all nodes when omitted).

    Nodes without any incident edge are absent from the returned mapping.
    """
    if node_ids is None:
        edges = list_edges(conn, project_id)
        wanted: Optional[set[str]] = None
    else:
        wanted = set(node_ids)
        edges = []
        seen: set[str] = set()
        for node_id in wanted:
            for edge in get_node_edges(conn, project_id, node_id):
                if edge.edge_id not in seen:
                    seen.add(edge.edge_id)
                    edges.append(edge)

    views: dict[str, NodeConnections] = {}
    for edge in edges:
        if wanted is None or edge.from_node in wanted:
            views.setdefault(edge.from_node, NodeConnections()).outgoing.append(
                OutgoingConnection(
                    edge_id=edge.edge_id,
                    to_node=edge.to_node,
                    routing=edge.source_handle or "",
                )
            )
        if wanted is None or edge.to_node in wanted:
            views.setdefault(edge.to_node, NodeConnections()).incoming.append(
                IncomingConnection(
                    edge_id=edge.edge_id,
                    from_node=edge.from_node,
                    routing=edge.target_handle or "",
                )
            )
    return views


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_edge(
    conn: sqlite3.Connection,
    project_id: str,
    from_node: str,
    to_node: str,
    label: Optional[str] = None,
    source_handle: Optional[str] = None,
    target_handle: Optional[str] = None,
    snapshot: Optional[ProjectSnapshotProvider] = None,
) -> EdgeWriteResult:
    """Create a directed edge from *from_node* to *to_node*.

    An identical edge (same endpoints and handles) is not an error: the call
    reports ``status="duplicate"`` with a warning notification and writes
    nothing.

    Args:
        conn: Open DB connection.
        project_id: Owning project.
        from_node: Source node id.
        to_node: Target node id.
        label: Optional display label.
        source_handle: Output port on the source node.
        target_handle: Input port on the target node.
        snapshot: Optional provider used to attach the full project view.

    Raises:
        NotFound: if either endpoint does not exist in the project.
    """
    source_handle = _clean_handle(source_handle)
    target_handle = _clean_handle(target_handle)

    with transaction(conn):
        assert_node_exists(conn, project_id, from_node)
        assert_node_exists(conn, project_id, to_node)

        existing = _find_edge(conn, project_id, from_node, to_node, source_handle, target_handle)
        if existing is not None:
            logger.debug("Duplicate edge %s ignored", existing.edge_id)
            return EdgeWriteResult(
                status="duplicate",
                edge=existing,
                notification=Notification(
                    code="duplicate_edge",
                    message=f"Connection {from_node} -> {to_node} already exists",
                    severity="warning",
                ),
                project=snapshot(conn, project_id) if snapshot else None,
            )

        conn.execute(
            """
            INSERT INTO edges (project_id, from_node, to_node, label, source_handle, target_handle)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (project_id, from_node, to_node, label, source_handle, target_handle),
        )
        touch_project(conn, project_id)
        edge = Edge(project_id, from_node, to_node, label, source_handle, target_handle)
        logger.info("Created edge %s in project %s", edge.edge_id, project_id)
        return EdgeWriteResult(
            status="created",
            edge=edge,
            project=snapshot(conn, project_id) if snapshot else None,
        )


def delete_edge(
    conn: sqlite3.Connection,
    project_id: str,
    from_node: str,
    to_node: str,
    snapshot: Optional[ProjectSnapshotProvider] = None,
) -> EdgeWriteResult:
    """Remove every edge from *from_node* to *to_node*, whatever its handles.

    Idempotent: deleting a missing edge returns ``status="missing"`` and
    leaves ``updated_at`` alone.
    """
    with transaction(conn):
        cur = conn.execute(
            "DELETE FROM edges WHERE project_id = ? AND from_node = ? AND to_node = ?",
            (project_id, from_node, to_node),
        )
        if cur.rowcount > 0:
            touch_project(conn, project_id)
            status = "deleted"
            logger.info("Deleted %d edge(s) %s -> %s", cur.rowcount, from_node, to_node)
        else:
            status = "missing"
        return EdgeWriteResult(
            status=status,
            project=snapshot(conn, project_id) if snapshot else None,
        )
