"""Dataclasses produced and consumed by the transformer operations."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class TextSplitConfig:
    separator: str = "---"
    sub_separator: str = "-"
    naming_mode: str = "auto"

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class Segment:
    """One node of the split tree.  ``path`` is dot-joined sibling indices."""

    path: str
    parent_path: Optional[str]
    depth: int
    order: int
    siblings: int
    content: str
    children: list[Segment] = field(default_factory=list)
    title: str = ""


@dataclass
class Placement:
    segment: Segment
    x: int
    y: int


@dataclass
class PreviewSegment:
    path: str
    depth: int
    order: int
    title: str
    content: str
    children: list[PreviewSegment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TextSplitPreview:
    source_node_id: str
    config: TextSplitConfig
    segments: list[PreviewSegment]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_node_id": self.source_node_id,
            "config": self.config.to_dict(),
            "segments": [s.to_dict() for s in self.segments],
        }


@dataclass
class CreatedNodeSummary:
    node_id: str
    type: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class CreatedNodeSnapshot:
    node_id: str
    type: str
    title: str
    content_type: Optional[str]
    ui_position: dict[str, float]
    meta: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CreatedEdge:
    from_node: str
    to_node: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.from_node, "to": self.to_node}


@dataclass
class TransformResult:
    """Outcome of a JSON-tree import."""

    created_nodes: list[CreatedNodeSummary]
    edges: list[CreatedEdge]
    logs: list[str]
    project_updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "created_nodes": [n.to_dict() for n in self.created_nodes],
            "edges": [e.to_dict() for e in self.edges],
            "logs": list(self.logs),
            "project_updated_at": self.project_updated_at,
        }


@dataclass
class TextSplitResult:
    preview: TextSplitPreview
    created_nodes: list[CreatedNodeSummary]
    node_snapshots: list[CreatedNodeSnapshot]
    edges: list[CreatedEdge]
    logs: list[str]
    project_updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "preview": self.preview.to_dict(),
            "created_nodes": [n.to_dict() for n in self.created_nodes],
            "node_snapshots": [n.to_dict() for n in self.node_snapshots],
            "edges": [e.to_dict() for e in self.edges],
            "logs": list(self.logs),
            "project_updated_at": self.project_updated_at,
        }
