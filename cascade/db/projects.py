"""CRUD operations for the ``projects`` table.

A Project owns an ordered collection of nodes.  Exactly one project may be
flagged as the inbox, the catch-all destination used when no project is
selected; :func:`ensure_inbox` creates it lazily.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from time import time
from typing import Optional

from cascade.config import settings
from cascade.db.models import PROJECT_TYPES, Project
from cascade.errors import ProjectNotFoundError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time() * 1000)


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        updated_at=row["updated_at"],
        is_inbox=bool(row["is_inbox"]),
        project_type=row["project_type"] or "canvas",
        file_handle=row["file_handle"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_project(
    conn: sqlite3.Connection,
    name: str,
    project_type: str = "canvas",
    file_handle: Optional[str] = None,
) -> Project:
    """Insert a new project and return it.

    Args:
        conn: Open DB connection.
        name: Display name; surrounding whitespace is stripped.
        project_type: ``canvas`` or ``markdown``.
        file_handle: Opaque reference to an external folder, if any.

    Raises:
        ValueError: If the name is blank or the type is unknown.
    """
    name = name.strip()
    if not name:
        raise ValueError("Project name must not be empty")
    if project_type not in PROJECT_TYPES:
        raise ValueError(f"Unknown project type {project_type!r}")

    pid = str(uuid.uuid4())
    with conn:
        conn.execute(
            """
            INSERT INTO projects (id, name, updated_at, is_inbox, project_type, file_handle)
            VALUES (?, ?, ?, 0, ?, ?)
            """,
            (pid, name, _now_ms(), project_type, file_handle),
        )
    logger.info("Created project %s (%s)", pid, name)
    return get_project(conn, pid)  # type: ignore[return-value]


def get_project(conn: sqlite3.Connection, project_id: str) -> Optional[Project]:
    """Fetch a single project by its id.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM projects WHERE id = ?", (project_id,)
    ).fetchone()
    return _row_to_project(row) if row else None


def require_project(conn: sqlite3.Connection, project_id: str) -> Project:
    """Like :func:`get_project` but raises :class:`ProjectNotFoundError`."""
    project = get_project(conn, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


def list_projects(conn: sqlite3.Connection) -> list[Project]:
    """Return every project, most recently updated first."""
    rows = conn.execute(
        "SELECT * FROM projects ORDER BY updated_at DESC, rowid DESC"
    ).fetchall()
    return [_row_to_project(r) for r in rows]


def find_project(conn: sqlite3.Connection, identifier: str) -> Optional[Project]:
    """Look a project up by id first, then by exact name."""
    project = get_project(conn, identifier)
    if project is not None:
        return project
    row = conn.execute(
        "SELECT * FROM projects WHERE name = ? ORDER BY updated_at DESC LIMIT 1",
        (identifier,),
    ).fetchone()
    return _row_to_project(row) if row else None


def rename_project(conn: sqlite3.Connection, project_id: str, name: str) -> Project:
    name = name.strip()
    if not name:
        raise ValueError("Project name must not be empty")
    with conn:
        cur = conn.execute(
            "UPDATE projects SET name = ?, updated_at = ? WHERE id = ?",
            (name, _now_ms(), project_id),
        )
    if cur.rowcount == 0:
        raise ProjectNotFoundError(project_id)
    return get_project(conn, project_id)  # type: ignore[return-value]


def set_file_handle(
    conn: sqlite3.Connection, project_id: str, file_handle: Optional[str]
) -> Project:
    """Attach (or clear, with ``None``) the external folder reference."""
    with conn:
        cur = conn.execute(
            "UPDATE projects SET file_handle = ?, updated_at = ? WHERE id = ?",
            (file_handle, _now_ms(), project_id),
        )
    if cur.rowcount == 0:
        raise ProjectNotFoundError(project_id)
    return get_project(conn, project_id)  # type: ignore[return-value]


def touch_project(conn: sqlite3.Connection, project_id: str) -> None:
    """Bump ``updated_at`` so the project sorts to the top of the list."""
    with conn:
        conn.execute(
            "UPDATE projects SET updated_at = ? WHERE id = ?",
            (_now_ms(), project_id),
        )


def delete_project(conn: sqlite3.Connection, project_id: str) -> bool:
    """Delete a project and (via CASCADE) all of its nodes.

    Returns ``True`` if a project was removed, ``False`` if it did not exist.
    """
    with conn:
        cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    if cur.rowcount:
        logger.info("Deleted project %s", project_id)
    return cur.rowcount > 0


def get_inbox(conn: sqlite3.Connection) -> Optional[Project]:
    row = conn.execute(
        "SELECT * FROM projects WHERE is_inbox = 1"
    ).fetchone()
    return _row_to_project(row) if row else None


def ensure_inbox(conn: sqlite3.Connection, name: Optional[str] = None) -> Project:
    """Return the inbox project, creating it first if none exists.

    The insert is a single conditional statement and the partial unique
    index on ``is_inbox`` rejects a second inbox, so concurrent callers
    cannot produce two.
    """
    inbox = get_inbox(conn)
    if inbox is not None:
        return inbox

    with conn:
        cur = conn.execute(
            """
            INSERT OR IGNORE INTO projects (id, name, updated_at, is_inbox, project_type)
            SELECT ?, ?, ?, 1, 'canvas'
            WHERE NOT EXISTS (SELECT 1 FROM projects WHERE is_inbox = 1)
            """,
            (str(uuid.uuid4()), name or settings.inbox_name, _now_ms()),
        )
    if cur.rowcount:
        logger.info("Created inbox project")
    return get_inbox(conn)  # type: ignore[return-value]
