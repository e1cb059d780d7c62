"""Project-level operations: lifecycle, snapshots, import/export and cloning.

:func:`get_project` doubles as the project snapshot provider handed to the
edge writers, which is why this module imports ``edges`` and never the other
way round.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
from typing import Any, Mapping, Optional
from uuid import uuid4

from flowgraph.db.connection import touch_project, transaction, utc_now
from flowgraph.db.edges import list_edges
from flowgraph.db.models import CONFIG_KEYS, Project, ProjectSummary
from flowgraph.db.nodes import list_nodes
from flowgraph.errors import Conflict, InvalidInput, NotFound
from flowgraph.normalization import normalize_ai_visible, normalize_ui

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_summary(row: sqlite3.Row) -> ProjectSummary:
    return ProjectSummary(
        project_id=row["project_id"],
        title=row["title"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        owner_id=row["owner_id"],
    )


def _project_exists(conn: sqlite3.Connection, project_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM projects WHERE project_id = ?", (project_id,)
    ).fetchone()
    return row is not None


def _deep_merge(base: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _next_copy_id(conn: sqlite3.Connection, source_id: str) -> str:
    candidate = f"{source_id}_copy"
    suffix = 1
    while _project_exists(conn, candidate):
        candidate = f"{source_id}_copy{suffix}"
        suffix += 1
    return candidate


def _insert_flow_node(conn: sqlite3.Connection, project_id: str, raw: Mapping[str, Any], now: str) -> None:
    node_id = raw.get("node_id")
    node_type = raw.get("type")
    if not isinstance(node_id, str) or not node_id.strip():
        raise InvalidInput("Every imported node needs a node_id")
    if not isinstance(node_type, str) or not node_type.strip():
        raise InvalidInput(f"Imported node {node_id} needs a type")

    config = {key: raw[key] for key in CONFIG_KEYS if raw.get(key) is not None}
    ui = normalize_ui(raw.get("ui"))
    conn.execute(
        """
        INSERT INTO nodes (
            project_id, node_id, type, title, content_type, content,
            meta_json, config_json, visibility_json, ui_color,
            bbox_x1, bbox_y1, bbox_x2, bbox_y2, ai_visible, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            project_id,
            node_id,
            node_type,
            raw.get("title") or node_id,
            raw.get("content_type"),
            raw.get("content"),
            json.dumps(raw.get("meta") or {}),
            json.dumps(config),
            json.dumps(raw.get("visibility_rules") or {}),
            ui.color,
            ui.bbox.x1,
            ui.bbox.y1,
            ui.bbox.x2,
            ui.bbox.y2,
            int(normalize_ai_visible(raw.get("ai_visible", True))),
            raw.get("created_at") or now,
            raw.get("updated_at") or now,
        ),
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def create_project(
    conn: sqlite3.Connection,
    title: str,
    description: str = "",
    project_id: Optional[str] = None,
    settings: Optional[Mapping[str, Any]] = None,
    schemas: Optional[Mapping[str, Any]] = None,
    owner_id: Optional[str] = None,
) -> Project:
    """Create an empty project and return it.

    Raises:
        InvalidInput: if *title* is blank.
        Conflict: if an explicit *project_id* is already used.
    """
    if not title or not title.strip():
        raise InvalidInput("Project title is required")
    pid = project_id or str(uuid4())
    now = utc_now()

    with transaction(conn):
        if _project_exists(conn, pid):
            raise Conflict(f"Project {pid} already exists")
        conn.execute(
            """
            INSERT INTO projects (project_id, title, description, settings_json,
                                  schemas_json, owner_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                pid,
                title.strip(),
                description or "",
                json.dumps(dict(settings or {})),
                json.dumps(dict(schemas or {})),
                owner_id,
                now,
                now,
            ),
        )

    logger.info("Created project %s", pid)
    return require_project(conn, pid)


def get_project(conn: sqlite3.Connection, project_id: str) -> Optional[Project]:
    """Return the full project snapshot (nodes and edges), or ``None``."""
    row = conn.execute(
        "SELECT * FROM projects WHERE project_id = ?", (project_id,)
    ).fetchone()
    if row is None:
        return None
    return Project(
        project_id=row["project_id"],
        title=row["title"],
        description=row["description"],
        settings=json.loads(row["settings_json"] or "{}"),
        schemas=json.loads(row["schemas_json"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        owner_id=row["owner_id"],
        nodes=list_nodes(conn, project_id),
        edges=list_edges(conn, project_id),
    )


def require_project(conn: sqlite3.Connection, project_id: str) -> Project:
    project = get_project(conn, project_id)
    if project is None:
        raise NotFound(f"Project {project_id} not found")
    return project


def list_projects(conn: sqlite3.Connection) -> list[ProjectSummary]:
    """Return project summaries, most recently updated first."""
    rows = conn.execute(
        "SELECT * FROM projects ORDER BY updated_at DESC, project_id"
    ).fetchall()
    return [_row_to_summary(r) for r in rows]


def update_project_metadata(
    conn: sqlite3.Connection,
    project_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Project:
    """Rename or re-describe a project.  Blank titles keep the current one."""
    with transaction(conn):
        current = require_project(conn, project_id)
        new_title = title.strip() if title and title.strip() else current.title
        new_description = current.description if description is None else description
        conn.execute(
            "UPDATE projects SET title = ?, description = ? WHERE project_id = ?",
            (new_title, new_description, project_id),
        )
        touch_project(conn, project_id)
    return require_project(conn, project_id)


def update_project_settings(
    conn: sqlite3.Connection, project_id: str, patch: Mapping[str, Any]
) -> Project:
    """Deep-merge *patch* into the project's settings map."""
    if not isinstance(patch, Mapping):
        raise InvalidInput("settings patch must be an object")
    with transaction(conn):
        current = require_project(conn, project_id)
        merged = _deep_merge(current.settings, patch)
        conn.execute(
            "UPDATE projects SET settings_json = ? WHERE project_id = ?",
            (json.dumps(merged), project_id),
        )
        touch_project(conn, project_id)
    return require_project(conn, project_id)


def delete_project(conn: sqlite3.Connection, project_id: str) -> None:
    """Delete a project and everything it owns.

    Raises:
        NotFound: if the project does not exist.
    """
    with transaction(conn):
        if not _project_exists(conn, project_id):
            raise NotFound(f"Project {project_id} not found")
        for table in ("edges", "runs", "assets", "nodes"):
            conn.execute(f"DELETE FROM {table} WHERE project_id = ?", (project_id,))
        conn.execute("DELETE FROM projects WHERE project_id = ?", (project_id,))
    logger.info("Deleted project %s", project_id)


# ---------------------------------------------------------------------------
# Import / export / clone
# ---------------------------------------------------------------------------

def export_project(conn: sqlite3.Connection, project_id: str) -> dict[str, Any]:
    """Serialise a project into a JSON-compatible flow document."""
    return require_project(conn, project_id).to_dict()


def import_project(conn: sqlite3.Connection, flow: Mapping[str, Any]) -> Project:
    """Insert a project from a flow document, replacing any existing copy.

    Edges whose endpoints are not among the imported nodes are rejected.

    Raises:
        InvalidInput: for a malformed document or a repeated node_id.
    """
    if not isinstance(flow, Mapping):
        raise InvalidInput("Flow document must be an object")
    project_id = flow.get("project_id")
    if not isinstance(project_id, str) or not project_id.strip():
        raise InvalidInput("Flow document needs a project_id")
    nodes = flow.get("nodes") or []
    edges = flow.get("edges") or []
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise InvalidInput("nodes and edges must be lists")

    now = utc_now()
    with transaction(conn):
        for table in ("edges", "runs", "assets", "nodes"):
            conn.execute(f"DELETE FROM {table} WHERE project_id = ?", (project_id,))
        conn.execute("DELETE FROM projects WHERE project_id = ?", (project_id,))
        conn.execute(
            """
            INSERT INTO projects (project_id, title, description, settings_json,
                                  schemas_json, owner_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project_id,
                flow.get("title") or project_id,
                flow.get("description") or "",
                json.dumps(flow.get("settings") or {}),
                json.dumps(flow.get("schemas") or {}),
                flow.get("owner_id"),
                flow.get("created_at") or now,
                now,
            ),
        )

        known: set[str] = set()
        for raw in nodes:
            if not isinstance(raw, Mapping):
                raise InvalidInput("Every imported node must be an object")
            if isinstance(raw.get("node_id"), str) and raw["node_id"] in known:
                raise InvalidInput(f"Duplicate node_id in flow document: {raw['node_id']}")
            _insert_flow_node(conn, project_id, raw, now)
            known.add(raw["node_id"])

        for raw in edges:
            if not isinstance(raw, Mapping):
                raise InvalidInput("Every imported edge must be an object")
            source, target = raw.get("from"), raw.get("to")
            if source not in known or target not in known:
                raise InvalidInput(f"Edge {source} -> {target} references an unknown node")
            conn.execute(
                """
                INSERT OR IGNORE INTO edges (project_id, from_node, to_node, label,
                                             source_handle, target_handle)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    project_id,
                    source,
                    target,
                    raw.get("label"),
                    raw.get("sourceHandle") or None,
                    raw.get("targetHandle") or None,
                ),
            )

    logger.info("Imported project %s (%d nodes, %d edges)", project_id, len(nodes), len(edges))
    return require_project(conn, project_id)


def clone_project(
    conn: sqlite3.Connection,
    source_id: str,
    new_id: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Project:
    """Copy a whole project (nodes and edges) under a new id.

    Raises:
        NotFound: if the source project does not exist.
        Conflict: if an explicit *new_id* is already used.
    """
    with transaction(conn):
        source = require_project(conn, source_id)
        if new_id and _project_exists(conn, new_id):
            raise Conflict(f"Project {new_id} already exists")
        target_id = new_id or _next_copy_id(conn, source_id)

        flow = source.to_dict()
        flow["project_id"] = target_id
        flow["title"] = title.strip() if title and title.strip() else f"Copy of {source.title}"
        if description is not None:
            flow["description"] = description
        flow["created_at"] = None
        for node in flow["nodes"]:
            node["created_at"] = node["updated_at"] = None
        return import_project(conn, flow)
