"""Pydantic schemas and serialisation helpers shared by the routers."""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from cascade.db.models import Node, Project
from cascade.ingest.events import IngestResult


class ProjectResponse(BaseModel):
    id: str
    name: str
    updated_at: int
    is_inbox: bool
    project_type: str
    file_handle: Optional[str] = None


class NodeResponse(BaseModel):
    id: str
    project_id: str
    type: str
    order: int
    created_at: int
    text: Optional[str] = None
    original_text: Optional[str] = None
    edited_text: Optional[str] = None
    has_edited: bool = False
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    url: Optional[str] = None
    source_url: Optional[str] = None
    source_icon: Optional[str] = None


class IngestResponse(BaseModel):
    status: str
    source: Optional[str] = None
    node_ids: list[str] = Field(default_factory=list)
    task_id: Optional[str] = None
    error: Optional[str] = None


def project_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "updated_at": project.updated_at,
        "is_inbox": project.is_inbox,
        "project_type": project.project_type,
        "file_handle": project.file_handle,
    }


def node_dict(node: Node) -> dict[str, Any]:
    """Node fields minus the raw file bytes, which have their own endpoint."""
    return {
        "id": node.id,
        "project_id": node.project_id,
        "type": node.type,
        "order": node.order,
        "created_at": node.created_at,
        "text": node.text,
        "original_text": node.original_text,
        "edited_text": node.edited_text,
        "has_edited": node.has_edited,
        "file_name": node.file_name,
        "file_size": len(node.file_data) if node.file_data is not None else None,
        "url": node.url,
        "source_url": node.source_url,
        "source_icon": node.source_icon,
    }


def ingest_dict(result: IngestResult) -> dict[str, Any]:
    return {
        "status": result.status,
        "source": result.source,
        "node_ids": [n.id for n in result.nodes],
        "task_id": result.task_id,
        "error": result.error,
    }


def content_disposition(disposition: str, filename: Optional[str]) -> str:
    """Build a ``Content-Disposition`` value that survives any file name.

    The plain ``filename`` parameter gets an ASCII-only copy with quotes and
    backslashes replaced; the exact name travels in ``filename*`` (RFC 5987)
    whenever the two differ.
    """
    if not filename:
        return disposition
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename)
    value = f'{disposition}; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=utf-8''{quote(filename, safe='')}"
    return value
