"""Node endpoints.

Routes
------
GET    /nodes/{node_id}          Fetch a single node (without file bytes)
GET    /nodes/{node_id}/file     Raw bytes of a file node
PUT    /nodes/{node_id}/text     Edit a text node
DELETE /nodes/{node_id}          Delete a node; it can be undone for a short while
POST   /nodes/undo               Restore the most recently deleted node
"""

from __future__ import annotations

import mimetypes
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from cascade.api.schemas import NodeResponse, content_disposition, node_dict
from cascade.db.nodes import get_node, update_text_node
from cascade.errors import NodeNotFoundError, NotFoundError

router = APIRouter()


class TextUpdate(BaseModel):
    content: str


def _require_node(request: Request, node_id: str):  # type: ignore[no-untyped-def]
    node = get_node(request.app.state.db, node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    return node


@router.post("/undo", response_model=NodeResponse)
def undo_endpoint(request: Request) -> dict[str, Any]:
    node = request.app.state.undo.undo(request.app.state.db)
    if node is None:
        raise HTTPException(status_code=404, detail="Nothing to undo.")
    return node_dict(node)


@router.get("/{node_id}", response_model=NodeResponse)
def get_node_endpoint(node_id: str, request: Request) -> dict[str, Any]:
    return node_dict(_require_node(request, node_id))


@router.get("/{node_id}/file")
def node_file_endpoint(node_id: str, request: Request) -> Response:
    node = _require_node(request, node_id)
    if node.type != "file" or node.file_data is None:
        raise HTTPException(status_code=404, detail=f"Node '{node_id}' has no file.")
    media_type = mimetypes.guess_type(node.file_name or "")[0] or "application/octet-stream"
    return Response(
        content=node.file_data,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition("inline", node.file_name)},
    )


@router.put("/{node_id}/text", response_model=NodeResponse)
def edit_text_endpoint(node_id: str, body: TextUpdate, request: Request) -> dict[str, Any]:
    """Apply an edit; content equal to the current text changes nothing."""
    try:
        node = update_text_node(request.app.state.db, node_id, body.content)
    except NotFoundError:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return node_dict(node)


@router.delete("/{node_id}")
def delete_node_endpoint(node_id: str, request: Request) -> Response:
    snapshot = request.app.state.undo.delete(request.app.state.db, node_id)
    if snapshot is None:
        raise NodeNotFoundError(node_id)
    return Response(status_code=204)
