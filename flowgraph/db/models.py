"""Dataclass models representing DB rows and engine views.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types; ``to_dict()`` gives the JSON wire
shape used by the API and by project export.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional
import sqlite3

DEFAULT_NODE_COLOR = "#6B7280"
DEFAULT_NODE_WIDTH = 240
DEFAULT_NODE_HEIGHT = 120

# Keys of the per-type config map that travel flattened on the wire.
CONFIG_KEYS = ("ai", "parser", "python", "image_gen", "audio_gen", "video_gen")


@dataclass
class BBox:
    x1: float = 0
    y1: float = 0
    x2: float = DEFAULT_NODE_WIDTH
    y2: float = DEFAULT_NODE_HEIGHT

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1


@dataclass
class NodeUI:
    color: str = DEFAULT_NODE_COLOR
    bbox: BBox = field(default_factory=BBox)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IncomingConnection:
    edge_id: str
    from_node: str
    routing: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"edge_id": self.edge_id, "from": self.from_node, "routing": self.routing}


@dataclass
class OutgoingConnection:
    edge_id: str
    to_node: str
    routing: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"edge_id": self.edge_id, "to": self.to_node, "routing": self.routing}


@dataclass
class NodeConnections:
    incoming: list[IncomingConnection] = field(default_factory=list)
    outgoing: list[OutgoingConnection] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            "incoming": [c.to_dict() for c in self.incoming],
            "outgoing": [c.to_dict() for c in self.outgoing],
        }


@dataclass
class Node:
    project_id: str
    node_id: str
    type: str
    title: str
    content: Optional[str]
    content_type: Optional[str]
    meta: dict[str, Any]
    config: dict[str, Any]
    visibility_rules: dict[str, Any]
    ui: NodeUI
    ai_visible: bool
    connections: NodeConnections
    created_at: str
    updated_at: str

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        """Wire shape: config keys are flattened onto the node."""
        data: dict[str, Any] = {
            "node_id": self.node_id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "content_type": self.content_type,
            "meta": self.meta,
            "visibility_rules": self.visibility_rules,
            "ui": self.ui.to_dict(),
            "ai_visible": self.ai_visible,
            "connections": self.connections.to_dict(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        data.update(self.config)
        return data


@dataclass
class Edge:
    project_id: str
    from_node: str
    to_node: str
    label: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None

    @property
    def edge_id(self) -> str:
        """Stable textual identity, e.g. ``n1_text:out->n2_ai``."""
        source = f"{self.from_node}:{self.source_handle}" if self.source_handle else self.from_node
        target = f"{self.to_node}:{self.target_handle}" if self.target_handle else self.to_node
        return f"{source}->{target}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "edge_id": self.edge_id,
            "from": self.from_node,
            "to": self.to_node,
            "label": self.label,
            "sourceHandle": self.source_handle,
            "targetHandle": self.target_handle,
        }


@dataclass
class ProjectSummary:
    project_id: str
    title: str
    description: str
    created_at: str
    updated_at: str
    owner_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Project:
    project_id: str
    title: str
    description: str
    settings: dict[str, Any]
    schemas: dict[str, Any]
    created_at: str
    updated_at: str
    owner_id: Optional[str] = None
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "settings": self.settings,
            "schemas": self.schemas,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "owner_id": self.owner_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass
class RunRecord:
    run_id: str
    project_id: str
    node_id: str
    started_at: str
    finished_at: str
    status: str
    input_hash: str
    output_hash: str
    logs: list[Any] = field(default_factory=list)


@dataclass
class AssetRecord:
    asset_id: str
    project_id: str
    node_id: Optional[str]
    path: str
    meta: dict[str, Any]
    created_at: str


@dataclass
class NodeWriteResult:
    node: Node
    project_updated_at: str


@dataclass
class Notification:
    code: str
    message: str
    severity: str = "info"


@dataclass
class EdgeWriteResult:
    """Outcome of an edge mutation.

    ``status`` is ``created`` / ``duplicate`` for inserts and ``deleted`` /
    ``missing`` for removals; neither ``duplicate`` nor ``missing`` is an
    error.
    """

    status: str
    edge: Optional[Edge] = None
    notification: Optional[Notification] = None
    project: Optional[Project] = None


# Narrow capability the edge/node writers use to return the full project
# view without importing the project module.
ProjectSnapshotProvider = Callable[[sqlite3.Connection, str], Optional[Project]]
