"""Project lifecycle endpoints.

Routes
------
GET    /projects                        List project summaries
POST   /projects                        Create a project
POST   /projects/import                 Import a flow document
GET    /projects/{project_id}           Full snapshot (nodes + edges)
PATCH  /projects/{project_id}           Update title / description
DELETE /projects/{project_id}           Delete with everything it owns
PATCH  /projects/{project_id}/settings  Deep-merge settings
POST   /projects/{project_id}/clone     Copy the whole project
GET    /projects/{project_id}/export    Flow document
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from flowgraph.db.projects import (
    clone_project,
    create_project,
    delete_project,
    export_project,
    import_project,
    list_projects,
    require_project,
    update_project_metadata,
    update_project_settings,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ProjectCreate(BaseModel):
    title: str
    description: str = ""
    project_id: Optional[str] = None
    settings: Optional[dict[str, Any]] = None
    schemas: Optional[dict[str, Any]] = None
    owner_id: Optional[str] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class ProjectClone(BaseModel):
    new_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
def list_all(request: Request) -> list[dict[str, Any]]:
    return [p.to_dict() for p in list_projects(request.app.state.db)]


@router.post("", status_code=201)
def create(body: ProjectCreate, request: Request) -> dict[str, Any]:
    project = create_project(request.app.state.db, **body.model_dump())
    return project.to_dict()


@router.post("/import", status_code=201)
def import_flow(flow: dict[str, Any], request: Request) -> dict[str, Any]:
    """Replace-or-insert a project from an exported flow document."""
    return import_project(request.app.state.db, flow).to_dict()


@router.get("/{project_id}")
def get_one(project_id: str, request: Request) -> dict[str, Any]:
    return require_project(request.app.state.db, project_id).to_dict()


@router.patch("/{project_id}")
def update(project_id: str, body: ProjectUpdate, request: Request) -> dict[str, Any]:
    project = update_project_metadata(
        request.app.state.db, project_id, title=body.title, description=body.description
    )
    return project.to_dict()


@router.delete("/{project_id}", status_code=204)
def delete(project_id: str, request: Request) -> Response:
    delete_project(request.app.state.db, project_id)
    return Response(status_code=204)


@router.patch("/{project_id}/settings")
def patch_settings(project_id: str, patch: dict[str, Any], request: Request) -> dict[str, Any]:
    return update_project_settings(request.app.state.db, project_id, patch).to_dict()


@router.post("/{project_id}/clone", status_code=201)
def clone(project_id: str, request: Request, body: Optional[ProjectClone] = None) -> dict[str, Any]:
    body = body or ProjectClone()
    project = clone_project(
        request.app.state.db,
        project_id,
        new_id=body.new_id,
        title=body.title,
        description=body.description,
    )
    return project.to_dict()


@router.get("/{project_id}/export")
def export(project_id: str, request: Request) -> dict[str, Any]:
    return export_project(request.app.state.db, project_id)
