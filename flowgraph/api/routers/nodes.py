"""Node endpoints.

Routes
------
GET    /projects/{project_id}/nodes                    List nodes
POST   /projects/{project_id}/nodes                    Create a node
GET    /projects/{project_id}/nodes/{node_id}          Fetch one node
PATCH  /projects/{project_id}/nodes/{node_id}          Partial update
DELETE /projects/{project_id}/nodes/{node_id}          Delete (edges, runs, assets cascade)
POST   /projects/{project_id}/nodes/{node_id}/clone    Clone, optionally with children
GET    /projects/{project_id}/nodes/{node_id}/runs     Execution history
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict

from flowgraph.db.nodes import clone_node, create_node, delete_node, get_node, list_nodes, update_node
from flowgraph.db.runs import get_node_runs

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class Position(BaseModel):
    x: float
    y: float


class NodeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    title: str
    node_id: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    content_type: Optional[str] = None
    meta: Optional[dict[str, Any]] = None
    ai: Optional[dict[str, Any]] = None
    parser: Optional[dict[str, Any]] = None
    python: Optional[dict[str, Any]] = None
    image_gen: Optional[dict[str, Any]] = None
    audio_gen: Optional[dict[str, Any]] = None
    video_gen: Optional[dict[str, Any]] = None
    visibility_rules: Optional[dict[str, Any]] = None
    ui: Optional[dict[str, Any]] = None
    ai_visible: Optional[Any] = None
    connections: Optional[dict[str, Any]] = None
    position: Optional[Position] = None


class NodeClone(BaseModel):
    include_subtree: bool = False
    max_depth: Optional[int] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/{project_id}/nodes")
def list_all(project_id: str, request: Request) -> list[dict[str, Any]]:
    return [n.to_dict() for n in list_nodes(request.app.state.db, project_id)]


@router.post("/{project_id}/nodes", status_code=201)
def create(project_id: str, body: NodeCreate, request: Request) -> dict[str, Any]:
    """Create a node; ``position`` seeds the bbox top-left corner."""
    data = body.model_dump(exclude_unset=True, exclude={"position"})
    position = body.position.model_dump() if body.position else None
    result = create_node(request.app.state.db, project_id, data, position=position)
    return {"node": result.node.to_dict(), "project_updated_at": result.project_updated_at}


@router.get("/{project_id}/nodes/{node_id}")
def get_one(project_id: str, node_id: str, request: Request) -> dict[str, Any]:
    node = get_node(request.app.state.db, project_id, node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id!r}")
    return node.to_dict()


@router.patch("/{project_id}/nodes/{node_id}")
def update(project_id: str, node_id: str, patch: dict[str, Any], request: Request) -> dict[str, Any]:
    """Partial update.  Explicit ``null`` resets a field; unknown keys are rejected."""
    return update_node(request.app.state.db, project_id, node_id, patch).to_dict()


@router.delete("/{project_id}/nodes/{node_id}", status_code=204)
def delete(project_id: str, node_id: str, request: Request) -> Response:
    delete_node(request.app.state.db, project_id, node_id)
    return Response(status_code=204)


@router.post("/{project_id}/nodes/{node_id}/clone", status_code=201)
def clone(
    project_id: str, node_id: str, request: Request, body: Optional[NodeClone] = None
) -> dict[str, Any]:
    body = body or NodeClone()
    node = clone_node(
        request.app.state.db,
        project_id,
        node_id,
        include_subtree=body.include_subtree,
        max_depth=body.max_depth,
    )
    return node.to_dict()


@router.get("/{project_id}/nodes/{node_id}/runs")
def runs(project_id: str, node_id: str, request: Request) -> list[dict[str, Any]]:
    return [asdict(r) for r in get_node_runs(request.app.state.db, project_id, node_id)]
