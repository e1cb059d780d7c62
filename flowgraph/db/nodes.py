"""CRUD, patch and clone operations for the ``nodes`` table."""

from __future__ import annotations

import json
import logging
import math
import re
import sqlite3
from collections import deque
from typing import Any, Mapping, Optional

from flowgraph import text_ops
from flowgraph.config import settings
from flowgraph.db.connection import touch_project, transaction, utc_now
from flowgraph.db.edges import connections_for
from flowgraph.db.models import (
    CONFIG_KEYS,
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    BBox,
    Node,
    NodeConnections,
    NodeUI,
    NodeWriteResult,
)
from flowgraph.errors import Conflict, InvalidInput, NotFound
from flowgraph.normalization import (
    merge_connections,
    merge_ui,
    normalize_ai_visible,
    normalize_connections,
    normalize_ui,
    round_half_up,
)

logger = logging.getLogger(__name__)

UPDATABLE_KEYS = frozenset(
    {
        "title",
        "content",
        "content_type",
        "content_ops",
        "meta",
        "visibility_rules",
        "ui",
        "ai_visible",
        "connections",
        *CONFIG_KEYS,
    }
)

_SEQ_ID_RE = re.compile(r"^n(\d+)_")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_node(row: sqlite3.Row, connections: Optional[NodeConnections] = None) -> Node:
    return Node(
        project_id=row["project_id"],
        node_id=row["node_id"],
        type=row["type"],
        title=row["title"],
        content=row["content"],
        content_type=row["content_type"],
        meta=json.loads(row["meta_json"] or "{}"),
        config=json.loads(row["config_json"] or "{}"),
        visibility_rules=json.loads(row["visibility_json"] or "{}"),
        ui=NodeUI(
            color=row["ui_color"],
            bbox=BBox(row["bbox_x1"], row["bbox_y1"], row["bbox_x2"], row["bbox_y2"]),
        ),
        ai_visible=bool(row["ai_visible"]),
        connections=connections or NodeConnections(),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _assert_project(conn: sqlite3.Connection, project_id: str) -> None:
    row = conn.execute(
        "SELECT 1 FROM projects WHERE project_id = ?", (project_id,)
    ).fetchone()
    if row is None:
        raise NotFound(f"Project {project_id} not found")


def _require_node(conn: sqlite3.Connection, project_id: str, node_id: str) -> Node:
    node = get_node(conn, project_id, node_id)
    if node is None:
        raise NotFound(f"Node {node_id} not found in project {project_id}")
    return node


def _as_dict(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidInput(f"{field_name} must be an object")
    return dict(value)


def _optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise InvalidInput(f"{field_name} must be a string")
    return value


def _is_coordinate(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


def _node_exists(conn: sqlite3.Connection, project_id: str, node_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM nodes WHERE project_id = ? AND node_id = ?",
        (project_id, node_id),
    ).fetchone()
    return row is not None


def slugify(value: Optional[str]) -> str:
    """Lower-case, whitespace to ``-``, drop anything outside ``[a-z0-9_-]``."""
    slug = re.sub(r"\s+", "-", (value or "").strip().lower())
    slug = re.sub(r"[^a-z0-9_-]", "", slug)
    return slug or "node"


def next_node_id(conn: sqlite3.Connection, project_id: str, slug_source: Optional[str]) -> str:
    """Generate ``n<seq>_<slug>`` one past the highest sequence in use."""
    slug = slugify(slug_source)
    rows = conn.execute(
        "SELECT node_id FROM nodes WHERE project_id = ?", (project_id,)
    ).fetchall()
    highest = 0
    for row in rows:
        match = _SEQ_ID_RE.match(row["node_id"])
        if match:
            highest = max(highest, int(match.group(1)))

    seq = highest + 1
    candidate = f"n{seq}_{slug}"
    while _node_exists(conn, project_id, candidate):
        seq += 1
        candidate = f"n{seq}_{slug}"
    return candidate


def _next_clone_id(conn: sqlite3.Connection, project_id: str, source_id: str) -> str:
    prefix = f"{source_id}_clone_"
    rows = conn.execute(
        "SELECT node_id FROM nodes WHERE project_id = ? AND substr(node_id, 1, ?) = ?",
        (project_id, len(prefix), prefix),
    ).fetchall()
    used = set()
    for row in rows:
        suffix = row["node_id"][len(prefix):]
        if suffix.isdigit():
            used.add(int(suffix))
    counter = 1
    while counter in used:
        counter += 1
    return f"{prefix}{counter:03d}"


def _auto_port_ids(ai_config: Any) -> set[str]:
    if not isinstance(ai_config, Mapping):
        return set()
    ports = ai_config.get("auto_ports")
    if not isinstance(ports, list):
        return set()
    ids = set()
    for port in ports:
        if isinstance(port, Mapping):
            port = port.get("id")
        if isinstance(port, str) and port.strip():
            ids.add(port.strip())
    return ids


def _drop_orphaned_ports(
    conn: sqlite3.Connection, project_id: str, node_id: str, orphaned: set[str]
) -> int:
    removed = 0
    for handle in sorted(orphaned):
        cur = conn.execute(
            """
            DELETE FROM edges
            WHERE  project_id = ?
              AND  ((from_node = ? AND source_handle = ?) OR (to_node = ? AND target_handle = ?))
            """,
            (project_id, node_id, handle, node_id, handle),
        )
        removed += cur.rowcount
    if removed:
        logger.info("Removed %d edge(s) bound to orphaned ports of %s", removed, node_id)
    return removed


def _insert_node_row(conn: sqlite3.Connection, node: Node) -> None:
    conn.execute(
        """
        INSERT INTO nodes (
            project_id, node_id, type, title, content_type, content,
            meta_json, config_json, visibility_json, ui_color,
            bbox_x1, bbox_y1, bbox_x2, bbox_y2, ai_visible, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            node.project_id,
            node.node_id,
            node.type,
            node.title,
            node.content_type,
            node.content,
            json.dumps(node.meta),
            json.dumps(node.config),
            json.dumps(node.visibility_rules),
            node.ui.color,
            node.ui.bbox.x1,
            node.ui.bbox.y1,
            node.ui.bbox.x2,
            node.ui.bbox.y2,
            int(node.ai_visible),
            node.created_at,
            node.updated_at,
        ),
    )


def _list_children(conn: sqlite3.Connection, project_id: str, node_id: str) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT to_node FROM edges
        WHERE  project_id = ? AND from_node = ?
        ORDER  BY to_node
        """,
        (project_id, node_id),
    ).fetchall()
    return [r["to_node"] for r in rows]


# ---------------------------------------------------------------------------
# Read accessors
# ---------------------------------------------------------------------------

def get_node(conn: sqlite3.Connection, project_id: str, node_id: str) -> Optional[Node]:
    """Fetch a single node with its derived connections.  ``None`` if absent."""
    row = conn.execute(
        "SELECT * FROM nodes WHERE project_id = ? AND node_id = ?",
        (project_id, node_id),
    ).fetchone()
    if row is None:
        return None
    views = connections_for(conn, project_id, [node_id])
    return _row_to_node(row, views.get(node_id))


def list_nodes(conn: sqlite3.Connection, project_id: str) -> list[Node]:
    """Return all nodes of a project ordered by ``node_id``."""
    rows = conn.execute(
        "SELECT * FROM nodes WHERE project_id = ? ORDER BY node_id",
        (project_id,),
    ).fetchall()
    views = connections_for(conn, project_id)
    return [_row_to_node(r, views.get(r["node_id"])) for r in rows]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_node(
    conn: sqlite3.Connection,
    project_id: str,
    data: Mapping[str, Any],
    position: Optional[Mapping[str, float]] = None,
) -> NodeWriteResult:
    """Insert a node built from a wire-shaped payload.

    Args:
        conn: Open DB connection.
        project_id: Owning project.
        data: ``type`` and ``title`` are required; ``node_id`` (or ``slug``
            for generated ids), ``content``, ``content_type``, ``meta``,
            config keys (``ai``, ``parser``, ...), ``visibility_rules``,
            ``ui``, ``ai_visible`` and ``connections`` are optional.
        position: ``{"x": .., "y": ..}`` seeding the bbox top-left corner.

    Returns:
        The stored node and the project's new ``updated_at``.

    Raises:
        NotFound: if the project does not exist.
        Conflict: if an explicit ``node_id`` is already taken.
        InvalidInput: for a missing type/title or a malformed field.
    """
    node_type = data.get("type")
    title = data.get("title")
    if not isinstance(node_type, str) or not node_type.strip():
        raise InvalidInput("Node type is required")
    if not isinstance(title, str):
        raise InvalidInput("Node title is required")

    meta = _as_dict(data.get("meta"), "meta")
    config = {
        key: data[key] for key in CONFIG_KEYS if key in data and data[key] is not None
    }
    ui = normalize_ui(data.get("ui"))
    if position is not None:
        x, y = position.get("x"), position.get("y")
        if not _is_coordinate(x) or not _is_coordinate(y):
            raise InvalidInput("position requires finite numeric x and y")
        left, top = round_half_up(x), round_half_up(y)
        width = ui.bbox.width if data.get("ui") else DEFAULT_NODE_WIDTH
        height = ui.bbox.height if data.get("ui") else DEFAULT_NODE_HEIGHT
        ui = normalize_ui(
            {"color": ui.color, "bbox": {"x1": left, "y1": top, "x2": left + width, "y2": top + height}}
        )
        meta["ui_position"] = {"x": left, "y": top}
    # Validated only: the stored view is derived from the edges table.
    normalize_connections(data.get("connections"))

    with transaction(conn):
        _assert_project(conn, project_id)
        explicit_id = data.get("node_id")
        if explicit_id:
            if _node_exists(conn, project_id, explicit_id):
                raise Conflict(f"Node {explicit_id} already exists in project {project_id}")
            node_id = explicit_id
        else:
            node_id = next_node_id(conn, project_id, data.get("slug") or node_type)

        now = utc_now()
        node = Node(
            project_id=project_id,
            node_id=node_id,
            type=node_type,
            title=title,
            content=_optional_text(data.get("content"), "content"),
            content_type=_optional_text(data.get("content_type"), "content_type"),
            meta=meta,
            config=config,
            visibility_rules=_as_dict(data.get("visibility_rules"), "visibility_rules"),
            ui=ui,
            ai_visible=normalize_ai_visible(data.get("ai_visible", True)),
            connections=NodeConnections(),
            created_at=now,
            updated_at=now,
        )
        _insert_node_row(conn, node)
        project_updated_at = touch_project(conn, project_id, now)

    logger.info("Created node %s (%s) in project %s", node_id, node_type, project_id)
    return NodeWriteResult(node=_require_node(conn, project_id, node_id), project_updated_at=project_updated_at)


def update_node(
    conn: sqlite3.Connection,
    project_id: str,
    node_id: str,
    patch: Mapping[str, Any],
) -> Node:
    """Apply a partial patch to a node.

    A key absent from *patch* keeps its value.  ``None`` resets: ``content``
    and ``content_type`` are cleared, ``meta`` and ``visibility_rules``
    become ``{}``, a config key is removed, ``ui`` and ``connections``
    return to defaults and ``ai_visible`` becomes ``True``.  A ``None``
    title keeps the current title.

    ``content_ops`` (retain/insert/delete) are applied to the stored content
    and override any plain ``content`` in the same patch.  When ``ai`` is
    replaced, edges bound to auto-generated ports that no longer exist are
    removed in the same transaction.

    Raises:
        NotFound: if the node does not exist.
        InvalidInput: on an unknown key or malformed value.
        InvalidOperation: if ``content_ops`` cannot be applied.
    """
    unknown = sorted(set(patch) - UPDATABLE_KEYS)
    if unknown:
        raise InvalidInput(f"Unknown node fields: {', '.join(unknown)}")

    with transaction(conn):
        current = _require_node(conn, project_id, node_id)

        title = current.title
        if patch.get("title") is not None:
            if not isinstance(patch["title"], str):
                raise InvalidInput("title must be a string")
            title = patch["title"]

        content = _optional_text(patch["content"], "content") if "content" in patch else current.content
        content_type = (
            _optional_text(patch["content_type"], "content_type")
            if "content_type" in patch
            else current.content_type
        )
        ops = text_ops.parse_operations(patch.get("content_ops"))
        if ops:
            content = text_ops.apply(current.content or "", ops)

        meta = _as_dict(patch["meta"], "meta") if "meta" in patch else current.meta
        visibility = (
            _as_dict(patch["visibility_rules"], "visibility_rules")
            if "visibility_rules" in patch
            else current.visibility_rules
        )

        config = dict(current.config)
        for key in CONFIG_KEYS:
            if key not in patch:
                continue
            if patch[key] is None:
                config.pop(key, None)
            else:
                config[key] = patch[key]

        ui = merge_ui(current.ui, patch["ui"]) if "ui" in patch else current.ui
        ai_visible = (
            normalize_ai_visible(True if patch["ai_visible"] is None else patch["ai_visible"])
            if "ai_visible" in patch
            else current.ai_visible
        )
        if "connections" in patch:
            merge_connections(current.connections, patch["connections"])

        if "ai" in patch:
            orphaned = _auto_port_ids(current.config.get("ai")) - _auto_port_ids(config.get("ai"))
            if orphaned:
                _drop_orphaned_ports(conn, project_id, node_id, orphaned)

        now = utc_now()
        conn.execute(
            """
            UPDATE nodes
            SET    title = ?, content = ?, content_type = ?, meta_json = ?,
                   config_json = ?, visibility_json = ?, ui_color = ?,
                   bbox_x1 = ?, bbox_y1 = ?, bbox_x2 = ?, bbox_y2 = ?,
                   ai_visible = ?, updated_at = ?
            WHERE  project_id = ? AND node_id = ?
            """,
            (
                title,
                content,
                content_type,
                json.dumps(meta),
                json.dumps(config),
                json.dumps(visibility),
                ui.color,
                ui.bbox.x1,
                ui.bbox.y1,
                ui.bbox.x2,
                ui.bbox.y2,
                int(ai_visible),
                now,
                project_id,
                node_id,
            ),
        )
        touch_project(conn, project_id, now)

    logger.debug("Updated node %s fields=%s", node_id, sorted(patch))
    return _require_node(conn, project_id, node_id)


def delete_node(conn: sqlite3.Connection, project_id: str, node_id: str) -> None:
    """Delete a node together with its edges, runs and assets.

    Raises:
        NotFound: if the node does not exist.
    """
    with transaction(conn):
        if not _node_exists(conn, project_id, node_id):
            raise NotFound(f"Node {node_id} not found in project {project_id}")
        conn.execute(
            "DELETE FROM edges WHERE project_id = ? AND (from_node = ? OR to_node = ?)",
            (project_id, node_id, node_id),
        )
        conn.execute("DELETE FROM runs WHERE project_id = ? AND node_id = ?", (project_id, node_id))
        conn.execute("DELETE FROM assets WHERE project_id = ? AND node_id = ?", (project_id, node_id))
        conn.execute("DELETE FROM nodes WHERE project_id = ? AND node_id = ?", (project_id, node_id))
        touch_project(conn, project_id)
    logger.info("Deleted node %s from project %s", node_id, project_id)


def _clone_single(conn: sqlite3.Connection, source: Node, now: str) -> str:
    clone_id = _next_clone_id(conn, source.project_id, source.node_id)
    _insert_node_row(
        conn,
        Node(
            project_id=source.project_id,
            node_id=clone_id,
            type=source.type,
            title=f"{source.title} (clone)",
            content=source.content,
            content_type=source.content_type,
            meta=source.meta,
            config=source.config,
            visibility_rules=source.visibility_rules,
            ui=source.ui,
            ai_visible=source.ai_visible,
            connections=NodeConnections(),
            created_at=now,
            updated_at=now,
        ),
    )
    conn.execute(
        """
        INSERT OR IGNORE INTO edges (project_id, from_node, to_node, label, source_handle, target_handle)
        SELECT project_id, ?, to_node, label, source_handle, target_handle
        FROM   edges
        WHERE  project_id = ? AND from_node = ?
        """,
        (clone_id, source.project_id, source.node_id),
    )
    return clone_id


def clone_node(
    conn: sqlite3.Connection,
    project_id: str,
    source_id: str,
    include_subtree: bool = False,
    max_depth: Optional[int] = None,
) -> Node:
    """Duplicate a node, optionally with the nodes below it.

    The clone gets every field of the source, a `` (clone)`` title suffix,
    an id ``<source>_clone_<NNN>`` and a copy of each outgoing edge.  With
    *include_subtree*, children are cloned level by level up to *max_depth*
    levels (``settings.clone_max_depth`` by default) and wired from their
    cloned parent.  A node reached twice is cloned once.

    Raises:
        NotFound: if the source node does not exist.
    """
    depth_limit = 0
    if include_subtree:
        depth_limit = settings.clone_max_depth if max_depth is None else max(0, max_depth)

    with transaction(conn):
        source = _require_node(conn, project_id, source_id)
        now = utc_now()
        clones: dict[str, str] = {source_id: _clone_single(conn, source, now)}
        queue: deque[tuple[str, int]] = deque([(source_id, 0)])

        while queue:
            original_id, depth = queue.popleft()
            if depth >= depth_limit:
                continue
            for child_id in _list_children(conn, project_id, original_id):
                if child_id not in clones:
                    child = _require_node(conn, project_id, child_id)
                    clones[child_id] = _clone_single(conn, child, now)
                    queue.append((child_id, depth + 1))
                conn.execute(
                    """
                    INSERT OR IGNORE INTO edges (project_id, from_node, to_node)
                    VALUES (?, ?, ?)
                    """,
                    (project_id, clones[original_id], clones[child_id]),
                )
        touch_project(conn, project_id, now)

    logger.info("Cloned %s into %d node(s)", source_id, len(clones))
    return _require_node(conn, project_id, clones[source_id])
