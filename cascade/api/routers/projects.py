"""Project endpoints.

Routes
------
GET    /projects                    List projects, most recently updated first
POST   /projects                    Create a project
GET    /projects/inbox              The inbox project (created on first use)
GET    /projects/{id}               One project
PATCH  /projects/{id}               Rename and/or set the folder reference
DELETE /projects/{id}               Delete a project and all of its nodes
GET    /projects/{id}/nodes         Nodes in display order
POST   /projects/{id}/reorder       Reassign node order (all-or-nothing)
GET    /projects/{id}/export        Canvas zip archive
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from cascade.api.schemas import (
    NodeResponse,
    ProjectResponse,
    content_disposition,
    node_dict,
    project_dict,
)
from cascade.db.nodes import list_project_nodes, reorder_nodes
from cascade.db.projects import (
    create_project,
    delete_project,
    ensure_inbox,
    list_projects,
    rename_project,
    require_project,
    set_file_handle,
)
from cascade.errors import NotFoundError
from cascade.export.canvas import export_project

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ProjectCreate(BaseModel):
    name: str
    project_type: str = "canvas"
    file_handle: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    file_handle: Optional[str] = None


class ReorderRequest(BaseModel):
    ordered_ids: list[str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[ProjectResponse])
def list_projects_endpoint(request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    return [project_dict(p) for p in list_projects(conn)]


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project_endpoint(body: ProjectCreate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    try:
        project = create_project(conn, body.name, body.project_type, body.file_handle)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return project_dict(project)


@router.get("/inbox", response_model=ProjectResponse)
def inbox_endpoint(request: Request) -> dict[str, Any]:
    return project_dict(ensure_inbox(request.app.state.db))


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project_endpoint(project_id: str, request: Request) -> dict[str, Any]:
    return project_dict(require_project(request.app.state.db, project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project_endpoint(
    project_id: str, body: ProjectUpdate, request: Request
) -> dict[str, Any]:
    conn = request.app.state.db
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    project = require_project(conn, project_id)
    if "name" in updates:
        try:
            project = rename_project(conn, project_id, updates["name"] or "")
        except NotFoundError:
            raise
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    if "file_handle" in updates:
        project = set_file_handle(conn, project_id, updates["file_handle"])
    return project_dict(project)


@router.delete("/{project_id}")
def delete_project_endpoint(project_id: str, request: Request) -> Response:
    if not delete_project(request.app.state.db, project_id):
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found.")
    return Response(status_code=204)


@router.get("/{project_id}/nodes", response_model=list[NodeResponse])
def project_nodes_endpoint(project_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    require_project(conn, project_id)
    return [node_dict(n) for n in list_project_nodes(conn, project_id)]


@router.post("/{project_id}/reorder", response_model=list[NodeResponse])
def reorder_endpoint(
    project_id: str, body: ReorderRequest, request: Request
) -> list[dict[str, Any]]:
    conn = request.app.state.db
    require_project(conn, project_id)
    reorder_nodes(conn, project_id, body.ordered_ids)
    return [node_dict(n) for n in list_project_nodes(conn, project_id)]


@router.get("/{project_id}/export")
def export_endpoint(project_id: str, request: Request) -> Response:
    """Download the project as a canvas zip; an empty project is refused."""
    result = export_project(request.app.state.db, project_id)
    if not result.ok:
        raise HTTPException(status_code=409, detail=result.message)
    return Response(
        content=result.data,
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition("attachment", result.filename)},
    )
