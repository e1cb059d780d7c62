"""Transformer endpoints: subgraph generation from content.

Routes
------
POST /projects/{project_id}/nodes/{node_id}/split/preview  Segment tree, no writes
POST /projects/{project_id}/nodes/{node_id}/split          Create segment nodes
POST /projects/{project_id}/nodes/{node_id}/import-tree    JSON tree import
POST /projects/{project_id}/nodes/{node_id}/single         One text/folder node
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from flowgraph.transformer import (
    create_single_text_node,
    import_json_tree,
    preview_text_split,
    split_text_node,
)

router = APIRouter()


class SplitConfig(BaseModel):
    separator: Optional[str] = None
    sub_separator: Optional[str] = None
    naming_mode: Optional[str] = None


class ManualTitle(BaseModel):
    path: str
    title: str


class SplitRequest(BaseModel):
    content: Optional[str] = None
    content_ops: Optional[list[dict[str, Any]]] = None
    config: Optional[SplitConfig] = None
    manual_titles: Optional[list[ManualTitle]] = None


class TreeImportRequest(BaseModel):
    payload: Any
    start_x: Optional[float] = None
    start_y: Optional[float] = None


class SingleNodeRequest(BaseModel):
    content: str = ""
    title: Optional[str] = None
    node_type: Literal["text", "folder"] = "text"


def _split_kwargs(body: SplitRequest) -> dict[str, Any]:
    return {
        "content": body.content,
        "content_ops": body.content_ops,
        "config": body.config.model_dump(exclude_none=True) if body.config else None,
        "manual_titles": [m.model_dump() for m in body.manual_titles] if body.manual_titles else None,
    }


@router.post("/{project_id}/nodes/{node_id}/split/preview")
def split_preview(project_id: str, node_id: str, body: SplitRequest, request: Request) -> dict[str, Any]:
    preview = preview_text_split(request.app.state.db, project_id, node_id, **_split_kwargs(body))
    return preview.to_dict()


@router.post("/{project_id}/nodes/{node_id}/split", status_code=201)
def split(project_id: str, node_id: str, body: SplitRequest, request: Request) -> dict[str, Any]:
    result = split_text_node(request.app.state.db, project_id, node_id, **_split_kwargs(body))
    return result.to_dict()


@router.post("/{project_id}/nodes/{node_id}/import-tree", status_code=201)
def import_tree(project_id: str, node_id: str, body: TreeImportRequest, request: Request) -> dict[str, Any]:
    result = import_json_tree(
        request.app.state.db,
        project_id,
        node_id,
        body.payload,
        start_x=body.start_x,
        start_y=body.start_y,
    )
    return result.to_dict()


@router.post("/{project_id}/nodes/{node_id}/single", status_code=201)
def single(project_id: str, node_id: str, body: SingleNodeRequest, request: Request) -> dict[str, Any]:
    summary = create_single_text_node(
        request.app.state.db,
        project_id,
        node_id,
        body.content,
        title=body.title,
        node_type=body.node_type,
    )
    return summary.to_dict()
