"""Ingestion endpoints: drops and pastes delivered by a panel front-end.

Routes
------
POST /ingest/drop     Body: data transfer (MIME → string, base64 files)
POST /ingest/paste    Body: clipboard data transfer plus the focused element
POST /ingest/upload   Multipart file upload, stored like a dropped file

Every route targets ``project_id`` or, when it is omitted, the inbox.
Remote images answer ``pending``; the node appears once the download
completes.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from cascade.api.schemas import IngestResponse, ingest_dict
from cascade.capture.transfer import DataTransfer, DroppedFile
from cascade.db.projects import ensure_inbox, require_project
from cascade.ingest.events import DropEvent, EventTarget, PasteEvent

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class FileBody(BaseModel):
    name: Optional[str] = None
    mime_type: str = ""
    data_base64: str = Field(repr=False)


class TransferBody(BaseModel):
    project_id: Optional[str] = None
    data: dict[str, str] = Field(default_factory=dict)
    files: list[FileBody] = Field(default_factory=list)


class TargetBody(BaseModel):
    tag: str = "DIV"
    content_editable: bool = False


class PasteBody(TransferBody):
    target: TargetBody = Field(default_factory=TargetBody)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _target_project(request: Request, project_id: Optional[str]) -> str:
    conn = request.app.state.db
    if project_id is None:
        return ensure_inbox(conn).id
    return require_project(conn, project_id).id


def _transfer(body: TransferBody) -> DataTransfer:
    files = []
    for f in body.files:
        try:
            data = base64.b64decode(f.data_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(status_code=422, detail=f"Invalid base64 for {f.name!r}") from exc
        files.append(DroppedFile(data=data, mime_type=f.mime_type, name=f.name))
    return DataTransfer(data=body.data, files=files)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/drop", response_model=IngestResponse)
async def drop_endpoint(body: TransferBody, request: Request) -> dict[str, Any]:
    project_id = _target_project(request, body.project_id)
    event = DropEvent(data_transfer=_transfer(body))
    result = await request.app.state.ingestion.handle_drop(event, project_id)
    return ingest_dict(result)


@router.post("/paste", response_model=IngestResponse)
async def paste_endpoint(body: PasteBody, request: Request) -> dict[str, Any]:
    project_id = _target_project(request, body.project_id)
    event = PasteEvent(
        clipboard=_transfer(body),
        target=EventTarget(tag=body.target.tag, content_editable=body.target.content_editable),
    )
    result = await request.app.state.ingestion.handle_paste(event, project_id)
    return ingest_dict(result)


@router.post("/upload", response_model=IngestResponse)
async def upload_endpoint(
    file: UploadFile, request: Request, project_id: Optional[str] = None
) -> dict[str, Any]:
    """Store an uploaded image as if it had been dropped onto the panel."""
    target = _target_project(request, project_id)
    content = await file.read()
    dropped = DroppedFile(data=content, mime_type=file.content_type or "", name=file.filename)
    if not dropped.is_image:
        raise HTTPException(status_code=422, detail="Uploaded file must be an image.")
    event = DropEvent(data_transfer=DataTransfer(files=[dropped]))
    result = await request.app.state.ingestion.handle_drop(event, target)
    return ingest_dict(result)
