"""Canvas exporter.

Serialises a project into a node-graph ("canvas") JSON document and packs
it, together with the binary attachments of its file nodes, into a zip
archive::

    <project>.zip
    ├── <project>.canvas
    └── attachments/
        └── image-1712345678901.png

Layout is a fixed grid of :data:`COLUMNS` columns.  Rows are spaced by
:data:`ROW_HEIGHT` (the tallest card) plus :data:`GAP`, not by each card's
own height, so mixed rows never overlap; ``y`` coordinates therefore
differ from exports that size every row by its own card.  Node ids in the
document are generated at export time; storage ids never leave the store.
Edges are always empty.
"""

from __future__ import annotations

import io
import json
import logging
import re
import sqlite3
import uuid
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from cascade.db.models import Node
from cascade.db.nodes import list_project_nodes
from cascade.db.projects import require_project
from cascade.errors import ExportError
from cascade.export.folder import FileHandle

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout constants
# ---------------------------------------------------------------------------
COLUMNS = 4
CARD_WIDTH = 400
CARD_HEIGHTS = {"text": 120, "file": 200, "link": 100}
GAP = 50
# Rows are spaced by the tallest card so cards of different types never overlap.
ROW_HEIGHT = max(CARD_HEIGHTS.values())

GRAPH_EXTENSION = "canvas"
ATTACHMENTS_DIR = "attachments"
EMPTY_PROJECT_MESSAGE = "This canvas is empty; there is nothing to export."


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ExportResult:
    """Outcome of an export.

    ``data`` holds the zip bytes (``None`` when nothing was produced, in which
    case ``message`` says why, ready to show to the user).
    """

    filename: str
    data: Optional[bytes] = field(default=None, repr=False)
    message: Optional[str] = None
    node_count: int = 0

    @property
    def ok(self) -> bool:
        return self.data is not None

    def save(self, dest_dir: Path) -> Path:
        if self.data is None:
            raise ExportError(self.message or "Nothing to save")
        dest_dir.mkdir(parents=True, exist_ok=True)
        path = dest_dir / self.filename
        path.write_bytes(self.data)
        return path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def safe_stem(name: str) -> str:
    """File-system safe version of a project name."""
    stem = "".join(c for c in name if c.isalnum() or c in (" ", "-", "_", ".")).strip(" .")
    return stem or "canvas"


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def grid_position(index: int) -> tuple[int, int]:
    col = index % COLUMNS
    row = index // COLUMNS
    return round(col * (CARD_WIDTH + GAP)), round(row * (ROW_HEIGHT + GAP))


def _clean_file_name(name: str) -> str:
    name = re.sub(r"[\\/:*?\"<>|]+", "_", name).strip(" .")
    return name


def plan_attachments(nodes: Sequence[Node]) -> dict[str, str]:
    """Choose a unique attachment file name for every file node (by node id)."""
    names: dict[str, str] = {}
    used: set[str] = set()
    for index, node in enumerate(nodes):
        if node.type != "file":
            continue
        name = _clean_file_name(node.file_name or "") or f"image-{index + 1}.png"
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        candidate, n = name, 1
        while candidate.lower() in used:
            candidate = f"{stem}-{n}.{ext}" if ext else f"{stem}-{n}"
            n += 1
        used.add(candidate.lower())
        names[node.id] = candidate
    return names


def canvas_node(node: Node, index: int, file_path: Optional[str] = None) -> dict[str, Any]:
    """One document record; only the payload field of its own type is set."""
    x, y = grid_position(index)
    record: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "type": node.type,
        "x": x,
        "y": y,
        "width": CARD_WIDTH,
        "height": CARD_HEIGHTS.get(node.type, CARD_HEIGHTS["text"]),
    }
    if node.type == "text":
        record["text"] = normalize_newlines(node.text or "")
    elif node.type == "file":
        record["file"] = file_path or f"{ATTACHMENTS_DIR}/image-{index + 1}.png"
    elif node.type == "link":
        # Link records must not carry a text field.
        record["url"] = node.url or ""
    return record


def build_document(
    nodes: Sequence[Node], attachment_paths: dict[str, str]
) -> dict[str, Any]:
    return {
        "nodes": [
            canvas_node(node, i, attachment_paths.get(node.id))
            for i, node in enumerate(nodes)
        ],
        "edges": [],
    }


def _dumps(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def build_archive(project_name: str, nodes: Sequence[Node]) -> bytes:
    """Zip the canvas document and attachments for *nodes*.

    Raises:
        ExportError: If serialisation or zipping fails.
    """
    stem = safe_stem(project_name)
    names = plan_attachments(nodes)
    paths = {nid: f"{ATTACHMENTS_DIR}/{name}" for nid, name in names.items()}

    try:
        document = _dumps(build_document(nodes, paths))
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(f"{stem}.{GRAPH_EXTENSION}", document)
            for node in nodes:
                if node.type == "file" and node.file_data:
                    zf.writestr(paths[node.id], node.file_data)
    except (TypeError, ValueError, OSError, zipfile.LargeZipFile) as exc:
        logger.error("Canvas export of %r failed: %s", project_name, exc)
        raise ExportError(f"Could not build archive for {project_name!r}: {exc}") from exc
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def export_project(conn: sqlite3.Connection, project_id: str) -> ExportResult:
    """Export a project as a zip archive held in memory.

    An empty project is refused: the result carries a message and no data.

    Raises:
        ProjectNotFoundError: If the project does not exist.
        ExportError: If building the archive fails.
    """
    project = require_project(conn, project_id)
    filename = f"{safe_stem(project.name)}.zip"
    nodes = list_project_nodes(conn, project_id)
    if not nodes:
        logger.info("Refusing to export empty project %s", project_id)
        return ExportResult(filename=filename, message=EMPTY_PROJECT_MESSAGE)

    data = build_archive(project.name, nodes)
    logger.info("Exported %s: %d nodes, %d bytes", project.name, len(nodes), len(data))
    return ExportResult(filename=filename, data=data, node_count=len(nodes))


def export_project_to_folder(
    conn: sqlite3.Connection, project_id: str, handle: FileHandle
) -> ExportResult:
    """Write the canvas document and attachments through a file handle.

    Returns a result whose ``filename`` is the document name in the folder;
    ``data`` holds the document bytes.

    Raises:
        ProjectNotFoundError: If the project does not exist.
        ExportError: If writing through the handle fails.
    """
    project = require_project(conn, project_id)
    doc_name = f"{safe_stem(project.name)}.{GRAPH_EXTENSION}"
    nodes = list_project_nodes(conn, project_id)
    if not nodes:
        return ExportResult(filename=doc_name, message=EMPTY_PROJECT_MESSAGE)

    names = plan_attachments(nodes)
    paths: dict[str, str] = {}
    try:
        for node in nodes:
            if node.id not in names:
                continue
            if node.file_data:
                paths[node.id] = handle.save_binary(ATTACHMENTS_DIR, names[node.id], node.file_data)
            else:
                paths[node.id] = f"{ATTACHMENTS_DIR}/{names[node.id]}"
        document = _dumps(build_document(nodes, paths))
        handle.write(doc_name, document)
    except (TypeError, ValueError, OSError) as exc:
        logger.error("Folder export of %r failed: %s", project.name, exc)
        raise ExportError(f"Could not write canvas for {project.name!r}: {exc}") from exc

    return ExportResult(filename=doc_name, data=document.encode("utf-8"), node_count=len(nodes))
