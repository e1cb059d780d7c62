"""Split a text node into a hierarchy of segment nodes.

The content is cut on a top-level separator (``---`` by default); each part
is optionally cut again on a sub-separator (``-`` by default), giving a
two-level segment tree.  Every segment becomes a ``text`` node placed to the
right of the source node and wired from its parent segment (or from the
source node for top-level segments).
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, Mapping, Optional

from flowgraph import text_ops
from flowgraph.db.connection import transaction, utc_now
from flowgraph.db.edges import create_edge
from flowgraph.db.models import Node
from flowgraph.db.nodes import create_node, get_node
from flowgraph.errors import InvalidInput, NotFound
from flowgraph.transformer.helpers import (
    build_preview_tree,
    clamp_title,
    derive_fallback_title,
    extract_title_from_content,
    flatten_segments,
    split_content_by_delimiter,
)
from flowgraph.transformer.layout import SEGMENT_NODE_HEIGHT, SEGMENT_NODE_WIDTH, compute_placements
from flowgraph.transformer.models import (
    CreatedEdge,
    CreatedNodeSnapshot,
    CreatedNodeSummary,
    PreviewSegment,
    Segment,
    TextSplitConfig,
    TextSplitPreview,
    TextSplitResult,
)

logger = logging.getLogger(__name__)

SINGLE_NODE_TYPES = ("text", "folder")


# ---------------------------------------------------------------------------
# Planning (pure)
# ---------------------------------------------------------------------------

def sanitize_text_split_config(config: Optional[Mapping[str, Any]] = None) -> TextSplitConfig:
    """Fill in defaults.  An explicit empty ``sub_separator`` disables sub-splitting."""
    defaults = TextSplitConfig()
    config = config or {}

    separator = config.get("separator")
    if not isinstance(separator, str) or not separator.strip():
        separator = defaults.separator

    sub_separator = config.get("sub_separator", defaults.sub_separator)
    if not isinstance(sub_separator, str):
        sub_separator = defaults.sub_separator

    naming_mode = "manual" if config.get("naming_mode") == "manual" else "auto"
    return TextSplitConfig(
        separator=separator.strip(),
        sub_separator=sub_separator.strip(),
        naming_mode=naming_mode,
    )


def build_manual_title_map(entries: Optional[Iterable[Any]]) -> dict[str, str]:
    """Map segment paths to user-chosen titles, skipping malformed entries."""
    titles: dict[str, str] = {}
    if entries is None or isinstance(entries, (str, bytes, Mapping)):
        return titles
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        path, title = entry.get("path"), entry.get("title")
        if not isinstance(path, str) or not isinstance(title, str):
            continue
        path, title = path.strip(), clamp_title(title)
        if path and title:
            titles[path] = title
    return titles


def _sub_segments(content: str, parent_path: str, config: TextSplitConfig) -> list[Segment]:
    if not config.sub_separator:
        return []
    parts = split_content_by_delimiter(content, config.sub_separator)
    if len(parts) <= 1:
        return []
    return [
        Segment(
            path=f"{parent_path}.{index}",
            parent_path=parent_path,
            depth=1,
            order=index,
            siblings=len(parts),
            content=part,
        )
        for index, part in enumerate(parts)
    ]


def build_segment_tree(content: str, config: TextSplitConfig) -> list[Segment]:
    parts = split_content_by_delimiter(content, config.separator)
    return [
        Segment(
            path=str(index),
            parent_path=None,
            depth=0,
            order=index,
            siblings=len(parts),
            content=part,
            children=_sub_segments(part, str(index), config),
        )
        for index, part in enumerate(parts)
    ]


def build_split_plan(
    content: str, config: TextSplitConfig, manual_titles: Mapping[str, str]
) -> tuple[list[Segment], list[Segment], list[PreviewSegment]]:
    """Return ``(tree, flat plan, preview tree)`` with titles resolved.

    Title precedence: manual title (manual mode only), then the first
    meaningful line of the segment, then ``Segment n`` / ``Sub-segment n.m``.
    """
    tree = build_segment_tree(content, config)
    plan = flatten_segments(tree)
    title_by_path: dict[str, str] = {}
    for segment in plan:
        manual = manual_titles.get(segment.path) if config.naming_mode == "manual" else None
        segment.title = clamp_title(
            manual
            or extract_title_from_content(segment.content)
            or derive_fallback_title(segment.path)
        )
        title_by_path[segment.path] = segment.title
    return tree, plan, build_preview_tree(tree, title_by_path)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def _require_source(conn: sqlite3.Connection, project_id: str, node_id: str) -> Node:
    node = get_node(conn, project_id, node_id)
    if node is None:
        raise NotFound(f"Node {node_id} not found in project {project_id}")
    return node


def _resolve_content(
    source: Node, content: Optional[str], content_ops: Optional[Iterable[Any]]
) -> str:
    base = content if isinstance(content, str) else (source.content or "")
    if content_ops:
        base = text_ops.apply(base, content_ops)
    resolved = base.strip()
    if not resolved:
        raise InvalidInput("Nothing to split: text node is empty")
    return resolved


def _segment_ui() -> dict[str, Any]:
    return {"bbox": {"x1": 0, "y1": 0, "x2": SEGMENT_NODE_WIDTH, "y2": SEGMENT_NODE_HEIGHT}}


def preview_text_split(
    conn: sqlite3.Connection,
    project_id: str,
    source_node_id: str,
    content: Optional[str] = None,
    config: Optional[Mapping[str, Any]] = None,
    manual_titles: Optional[Iterable[Any]] = None,
    content_ops: Optional[Iterable[Any]] = None,
) -> TextSplitPreview:
    """Compute the segment tree without writing anything.

    Raises:
        NotFound: if the source node does not exist.
        InvalidInput: if there is nothing to split.
        InvalidOperation: if *content_ops* cannot be applied.
    """
    source = _require_source(conn, project_id, source_node_id)
    text = _resolve_content(source, content, content_ops)
    split_config = sanitize_text_split_config(config)
    _, _, preview = build_split_plan(text, split_config, build_manual_title_map(manual_titles))
    if not preview:
        raise InvalidInput("Failed to extract segments using the specified delimiters")
    return TextSplitPreview(source_node_id=source_node_id, config=split_config, segments=preview)


def split_text_node(
    conn: sqlite3.Connection,
    project_id: str,
    source_node_id: str,
    content: Optional[str] = None,
    config: Optional[Mapping[str, Any]] = None,
    manual_titles: Optional[Iterable[Any]] = None,
    content_ops: Optional[Iterable[Any]] = None,
) -> TextSplitResult:
    """Create one node per segment and wire the tree, atomically.

    Takes the same arguments as :func:`preview_text_split`.
    """
    source = _require_source(conn, project_id, source_node_id)
    text = _resolve_content(source, content, content_ops)
    split_config = sanitize_text_split_config(config)
    _, plan, preview = build_split_plan(text, split_config, build_manual_title_map(manual_titles))
    if not plan:
        raise InvalidInput("Failed to extract segments using the specified delimiters")

    placements = compute_placements(source.ui.bbox, plan)
    created: list[CreatedNodeSummary] = []
    snapshots: list[CreatedNodeSnapshot] = []
    edges: list[CreatedEdge] = []
    logs: list[str] = []
    node_by_path: dict[str, str] = {}
    project_updated_at = ""

    with transaction(conn):
        for placement in placements:
            segment = placement.segment
            parent_id = node_by_path.get(segment.parent_path or "", source_node_id)
            result = create_node(
                conn,
                project_id,
                {
                    "type": "text",
                    "title": segment.title,
                    "content": segment.content,
                    "content_type": "text/plain",
                    "ui": _segment_ui(),
                    "meta": {
                        "text_split": {
                            "source_node_id": source_node_id,
                            "parent_path": segment.parent_path,
                            "path": segment.path,
                            "depth": segment.depth,
                            "order": segment.order,
                            "separator": split_config.separator,
                            "sub_separator": split_config.sub_separator,
                            "naming_mode": split_config.naming_mode,
                            "generated_at": utc_now(),
                        }
                    },
                },
                position={"x": placement.x, "y": placement.y},
            )
            node = result.node
            create_edge(conn, project_id, parent_id, node.node_id)
            node_by_path[segment.path] = node.node_id

            created.append(CreatedNodeSummary(node.node_id, node.type, node.title))
            snapshots.append(
                CreatedNodeSnapshot(
                    node_id=node.node_id,
                    type=node.type,
                    title=node.title,
                    content_type=node.content_type,
                    ui_position={"x": node.ui.bbox.x1, "y": node.ui.bbox.y1},
                    meta=node.meta,
                )
            )
            edges.append(CreatedEdge(parent_id, node.node_id))
            logs.append(f'Created segment "{node.title}" ({node.node_id})')

        project_updated_at = conn.execute(
            "SELECT updated_at FROM projects WHERE project_id = ?", (project_id,)
        ).fetchone()["updated_at"]

    if len(created) > 1:
        logs.append(f"Created {len(created)} segments.")
    logger.info("Split %s into %d segment(s)", source_node_id, len(created))
    return TextSplitResult(
        preview=TextSplitPreview(source_node_id=source_node_id, config=split_config, segments=preview),
        created_nodes=created,
        node_snapshots=snapshots,
        edges=edges,
        logs=logs,
        project_updated_at=project_updated_at,
    )


def create_single_text_node(
    conn: sqlite3.Connection,
    project_id: str,
    source_node_id: str,
    raw_content: str,
    title: Optional[str] = None,
    node_type: str = "text",
) -> CreatedNodeSummary:
    """Create one ``text`` (or ``folder``) node to the right of the source.

    Raises:
        NotFound: if the source node does not exist.
        InvalidInput: for an unsupported type or empty text content.
    """
    if node_type not in SINGLE_NODE_TYPES:
        raise InvalidInput(f"Unsupported node type for single-node creation: {node_type}")
    content = (raw_content or "").strip()
    if not content and node_type != "folder":
        raise InvalidInput("Empty content: new text node was not created")

    with transaction(conn):
        source = _require_source(conn, project_id, source_node_id)
        derived = extract_title_from_content(content) or derive_fallback_title("0")
        explicit = title.strip() if title else ""
        segment = Segment(
            path="0",
            parent_path=None,
            depth=0,
            order=0,
            siblings=1,
            content=content,
            title=clamp_title(explicit or derived),
        )
        placement = compute_placements(source.ui.bbox, [segment])[0]
        result = create_node(
            conn,
            project_id,
            {
                "type": node_type,
                "title": segment.title,
                "content": "" if node_type == "folder" else content,
                "content_type": "text/plain",
                "ui": _segment_ui(),
                "meta": {
                    "generated_from": {
                        "kind": "ai_single_node",
                        "source_node_id": source_node_id,
                        "generated_at": utc_now(),
                    }
                },
            },
            position={"x": placement.x, "y": placement.y},
        )
        create_edge(conn, project_id, source_node_id, result.node.node_id)

    node = result.node
    logger.info("Created single %s node %s from %s", node_type, node.node_id, source_node_id)
    return CreatedNodeSummary(node.node_id, node.type, node.title)
