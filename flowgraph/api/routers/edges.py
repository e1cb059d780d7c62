"""Edge endpoints.

Routes
------
GET    /projects/{project_id}/edges                 List edges
POST   /projects/{project_id}/edges                 Create (duplicates are reported, not errors)
DELETE /projects/{project_id}/edges?from=..&to=..   Remove (idempotent)
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from flowgraph.db.edges import create_edge, delete_edge, list_edges
from flowgraph.db.models import EdgeWriteResult
from flowgraph.db.projects import get_project

router = APIRouter()


class EdgeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_node: str = Field(alias="from")
    to_node: str = Field(alias="to")
    label: Optional[str] = None
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


def _write_response(result: EdgeWriteResult) -> dict[str, Any]:
    return {
        "status": result.status,
        "edge": result.edge.to_dict() if result.edge else None,
        "notification": asdict(result.notification) if result.notification else None,
        "project": result.project.to_dict() if result.project else None,
    }


@router.get("/{project_id}/edges")
def list_all(project_id: str, request: Request) -> list[dict[str, Any]]:
    return [e.to_dict() for e in list_edges(request.app.state.db, project_id)]


@router.post("/{project_id}/edges")
def create(project_id: str, body: EdgeCreate, request: Request) -> dict[str, Any]:
    result = create_edge(
        request.app.state.db,
        project_id,
        body.from_node,
        body.to_node,
        label=body.label,
        source_handle=body.source_handle,
        target_handle=body.target_handle,
        snapshot=get_project,
    )
    return _write_response(result)


@router.delete("/{project_id}/edges")
def delete(
    project_id: str,
    request: Request,
    from_node: str = Query(alias="from"),
    to_node: str = Query(alias="to"),
) -> dict[str, Any]:
    result = delete_edge(request.app.state.db, project_id, from_node, to_node, snapshot=get_project)
    return _write_response(result)
