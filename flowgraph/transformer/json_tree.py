"""Turn a JSON node tree (typically model output) into a laid-out subgraph."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping, Optional

from flowgraph.config import settings
from flowgraph.db.connection import transaction
from flowgraph.db.edges import create_edge
from flowgraph.db.nodes import create_node, get_node
from flowgraph.errors import InvalidInput, NotFound
from flowgraph.transformer.helpers import node_type_color
from flowgraph.transformer.layout import LEVEL_SPACING, staggered_y
from flowgraph.transformer.models import CreatedEdge, CreatedNodeSummary, TransformResult

logger = logging.getLogger(__name__)


def parse_tree_payload(payload: Any) -> list[Any]:
    """Return the list of root entries from JSON text or already-parsed data.

    Accepts ``{"nodes": [...]}`` or a bare list.

    Raises:
        InvalidInput: for undecodable JSON or any other shape.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise InvalidInput(f"Payload is not valid JSON: {exc.msg}") from exc

    if isinstance(payload, Mapping) and isinstance(payload.get("nodes"), list):
        return list(payload["nodes"])
    if isinstance(payload, list):
        return payload
    raise InvalidInput("JSON must contain a nodes array or be an array of nodes")


def _text_field(value: Any, default: str, name: str, depth: int) -> str:
    """Coerce a generated field to text: scalars via ``str``, objects and arrays as JSON."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, ensure_ascii=False)
    raise InvalidInput(f"Node {name} at level {depth} must be text")


def import_json_tree(
    conn: sqlite3.Connection,
    project_id: str,
    anchor_node_id: str,
    payload: Any,
    start_x: Optional[float] = None,
    start_y: Optional[float] = None,
    max_depth: Optional[int] = None,
) -> TransformResult:
    """Create one node per entry in *payload*, wired parent to child.

    Roots hang off the anchor node.  Entries nested deeper than *max_depth*
    levels are ignored.  Everything is created in one transaction.

    Raises:
        NotFound: if the anchor node does not exist.
        InvalidInput: if the payload is not a node tree.
    """
    roots = parse_tree_payload(payload)
    depth_limit = settings.transform_max_depth if max_depth is None else max_depth
    logs = [f"Found {len(roots)} root node(s) to create"]
    created: list[CreatedNodeSummary] = []
    edges: list[CreatedEdge] = []

    def create_tree(node_spec: Any, parent_id: str, depth: int, x: float, y: float) -> None:
        if depth > depth_limit:
            return
        if not isinstance(node_spec, Mapping):
            raise InvalidInput(f"Node at level {depth} must be an object")

        raw_type = node_spec.get("type")
        node_type = raw_type.strip() if isinstance(raw_type, str) and raw_type.strip() else "text"
        slug = node_spec.get("slug")
        result = create_node(
            conn,
            project_id,
            {
                "type": node_type,
                "title": _text_field(node_spec.get("title"), "Node", "title", depth),
                "content": _text_field(node_spec.get("content"), "", "content", depth),
                "slug": slug if isinstance(slug, str) else None,
                "meta": node_spec.get("meta"),
                "ai": node_spec.get("ai"),
                "ui": {"color": node_type_color(node_type)},
            },
            position={"x": x, "y": y},
        )
        node = result.node
        create_edge(conn, project_id, parent_id, node.node_id)

        created.append(CreatedNodeSummary(node.node_id, node.type, node.title))
        edges.append(CreatedEdge(parent_id, node.node_id))
        logs.append(
            f"Created node: {node.title} ({node.type}) at level {depth} "
            f"in staggered position ({node.ui.bbox.x1:g}, {node.ui.bbox.y1:g})"
        )

        children = node_spec.get("children")
        if isinstance(children, list) and children:
            for index, child in enumerate(children):
                child_y = staggered_y(y, index, len(children), depth + 1)
                create_tree(child, node.node_id, depth + 1, x + LEVEL_SPACING, child_y)

    with transaction(conn):
        anchor = get_node(conn, project_id, anchor_node_id)
        if anchor is None:
            raise NotFound(f"Node {anchor_node_id} not found in project {project_id}")
        base_x = anchor.ui.bbox.x1 if start_x is None else start_x
        base_y = anchor.ui.bbox.y1 if start_y is None else start_y

        for index, root in enumerate(roots):
            root_y = staggered_y(base_y, index, len(roots), 1)
            create_tree(root, anchor_node_id, 1, base_x + LEVEL_SPACING, root_y)
        row = conn.execute(
            "SELECT updated_at FROM projects WHERE project_id = ?", (project_id,)
        ).fetchone()

    logger.info(
        "Imported JSON tree under %s: %d node(s) in project %s",
        anchor_node_id,
        len(created),
        project_id,
    )
    return TransformResult(
        created_nodes=created,
        edges=edges,
        logs=logs,
        project_updated_at=row["updated_at"] if created else None,
    )
