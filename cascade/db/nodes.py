"""CRUD operations for the ``nodes`` table.

Ordering
--------
New nodes are appended: their ``order`` is one past the highest ``order``
already used in the project (which equals the node count while nothing has
been deleted).  The value is computed inside the ``INSERT`` statement
itself, so two concurrent ingestions into the same project can never be
handed the same position.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from time import time
from typing import Any, Optional, Sequence

from cascade.db.models import (
    NODE_TYPES,
    Node,
    NodeSnapshot,
    Pristine,
    apply_edit,
    version_columns,
)
from cascade.errors import NodeNotFoundError, ProjectNotFoundError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "text",
    "original_text",
    "edited_text",
    "has_edited",
    "file_data",
    "file_name",
    "url",
    "source_url",
    "source_icon",
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time() * 1000)


def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        project_id=row["project_id"],
        type=row["type"],
        order=row["order"],
        created_at=row["created_at"],
        text=row["text"],
        original_text=row["original_text"],
        edited_text=row["edited_text"],
        has_edited=bool(row["has_edited"]),
        file_data=row["file_data"],
        file_name=row["file_name"],
        url=row["url"],
        source_url=row["source_url"],
        source_icon=row["source_icon"],
    )


def _is_missing_project(exc: sqlite3.IntegrityError) -> bool:
    return "FOREIGN KEY" in str(exc).upper()


def _touch(conn: sqlite3.Connection, project_id: str) -> None:
    conn.execute(
        "UPDATE projects SET updated_at = ? WHERE id = ?", (_now_ms(), project_id)
    )


def _insert(
    conn: sqlite3.Connection,
    project_id: str,
    node_type: str,
    fields: dict[str, Any],
    created_at: Optional[int] = None,
) -> Node:
    """Append a node to *project_id* and return it.

    Raises:
        ProjectNotFoundError: If the project does not (or no longer) exist.
    """
    if node_type not in NODE_TYPES:
        raise ValueError(f"Unknown node type {node_type!r}")

    nid = str(uuid.uuid4())
    row = dict.fromkeys(_COLUMNS)
    row["has_edited"] = 0
    row.update(fields)
    values = [row[col] for col in _COLUMNS]
    columns = ", ".join(_COLUMNS)
    placeholders = ", ".join("?" for _ in _COLUMNS)

    try:
        with conn:
            conn.execute(
                f"""
                INSERT INTO nodes (id, project_id, type, "order", {columns}, created_at)
                SELECT ?, ?, ?,
                       (SELECT COALESCE(MAX("order") + 1, 0) FROM nodes WHERE project_id = ?),
                       {placeholders}, ?
                """,  # noqa: S608
                [nid, project_id, node_type, project_id, *values, created_at or _now_ms()],
            )
            _touch(conn, project_id)
    except sqlite3.IntegrityError as exc:
        if _is_missing_project(exc):
            raise ProjectNotFoundError(project_id) from exc
        raise

    node = get_node(conn, nid)
    logger.debug("Added %s node %s to project %s at order %d",
                 node_type, nid, project_id, node.order)  # type: ignore[union-attr]
    return node  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def add_text_node(
    conn: sqlite3.Connection,
    project_id: str,
    text: str,
    source_url: Optional[str] = None,
    source_icon: Optional[str] = None,
) -> Node:
    """Append a pristine text node (``text == original_text``, not edited)."""
    fields: dict[str, Any] = dict(version_columns(Pristine(text=text)))
    fields.update(source_url=source_url, source_icon=source_icon)
    return _insert(conn, project_id, "text", fields)


def add_image_node(
    conn: sqlite3.Connection,
    project_id: str,
    file_data: bytes,
    file_name: str,
    source_url: Optional[str] = None,
) -> Node:
    """Append a file node holding raw image bytes."""
    return _insert(
        conn,
        project_id,
        "file",
        {"file_data": bytes(file_data), "file_name": file_name, "source_url": source_url},
    )


def add_link_node(
    conn: sqlite3.Connection,
    project_id: str,
    url: str,
    title: Optional[str] = None,
    source_icon: Optional[str] = None,
    source_url: Optional[str] = None,
) -> Node:
    """Append a link node; *title* is kept in ``text`` for display only."""
    return _insert(
        conn,
        project_id,
        "link",
        {"url": url, "text": title, "source_icon": source_icon, "source_url": source_url},
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_node(conn: sqlite3.Connection, node_id: str) -> Optional[Node]:
    """Fetch a single node by its id.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM nodes WHERE id = ?", (node_id,)).fetchone()
    return _row_to_node(row) if row else None


def list_project_nodes(conn: sqlite3.Connection, project_id: str) -> list[Node]:
    """Return the nodes of *project_id* in display order."""
    rows = conn.execute(
        'SELECT * FROM nodes WHERE project_id = ? ORDER BY "order", created_at',
        (project_id,),
    ).fetchall()
    return [_row_to_node(r) for r in rows]


def count_project_nodes(conn: sqlite3.Connection, project_id: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) FROM nodes WHERE project_id = ?", (project_id,)
    ).fetchone()
    return row[0]


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

def update_text_node(conn: sqlite3.Connection, node_id: str, new_content: str) -> Node:
    """Apply a user edit to a text node.

    The first edit freezes ``original_text`` to the pre-edit text; later
    edits only replace ``edited_text``/``text``.  Content equal (after
    trimming) to the current text is a no-op: nothing is written and the
    node is returned unchanged.

    Raises:
        NodeNotFoundError: If the node does not exist.
        ValueError: If the node is not a text node.
    """
    node = get_node(conn, node_id)
    if node is None:
        raise NodeNotFoundError(node_id)

    new_version = apply_edit(node.version, new_content)
    if new_version is None:
        logger.debug("Content of node %s unchanged, skipping update", node_id)
        return node

    cols = version_columns(new_version)
    set_clause = ", ".join(f"{col} = ?" for col in cols)
    with conn:
        cur = conn.execute(
            f"UPDATE nodes SET {set_clause} WHERE id = ?",  # noqa: S608
            [*cols.values(), node_id],
        )
        if cur.rowcount == 0:
            raise NodeNotFoundError(node_id)
        _touch(conn, node.project_id)

    return get_node(conn, node_id)  # type: ignore[return-value]


def reorder_nodes(
    conn: sqlite3.Connection, project_id: str, ordered_ids: Sequence[str]
) -> None:
    """Set each node's ``order`` to its index in *ordered_ids*.

    All updates run in one transaction: if any id is unknown or belongs to
    another project the whole call is rolled back and nothing changes.

    Raises:
        NodeNotFoundError: For the first id that is not in the project.
    """
    with conn:
        for index, node_id in enumerate(ordered_ids):
            cur = conn.execute(
                'UPDATE nodes SET "order" = ? WHERE id = ? AND project_id = ?',
                (index, node_id, project_id),
            )
            if cur.rowcount == 0:
                raise NodeNotFoundError(node_id)
        _touch(conn, project_id)
    logger.debug("Reordered %d nodes in project %s", len(ordered_ids), project_id)


# ---------------------------------------------------------------------------
# Delete / restore
# ---------------------------------------------------------------------------

def delete_node(conn: sqlite3.Connection, node_id: str) -> Optional[NodeSnapshot]:
    """Delete a node and return a snapshot of what was removed.

    Returns ``None`` (and does nothing) if the node does not exist.
    """
    node = get_node(conn, node_id)
    if node is None:
        return None
    with conn:
        conn.execute("DELETE FROM nodes WHERE id = ?", (node_id,))
        _touch(conn, node.project_id)
    return node.snapshot()


def restore_node(conn: sqlite3.Connection, snapshot: NodeSnapshot) -> Node:
    """Re-insert a deleted node under a new id at its former position.

    If a sibling has taken the snapshot's ``order`` since the delete, that
    sibling and every node after it move down one place so the restored
    node lands where it used to be.

    Raises:
        ProjectNotFoundError: If the owning project has been deleted.
    """
    nid = str(uuid.uuid4())
    fields = [getattr(snapshot, col) for col in _COLUMNS]
    columns = ", ".join(_COLUMNS)
    placeholders = ", ".join("?" for _ in _COLUMNS)

    try:
        with conn:
            occupied = conn.execute(
                'SELECT 1 FROM nodes WHERE project_id = ? AND "order" = ?',
                (snapshot.project_id, snapshot.order),
            ).fetchone()
            if occupied:
                conn.execute(
                    'UPDATE nodes SET "order" = "order" + 1 '
                    'WHERE project_id = ? AND "order" >= ?',
                    (snapshot.project_id, snapshot.order),
                )
            conn.execute(
                f"""
                INSERT INTO nodes (id, project_id, type, "order", {columns}, created_at)
                VALUES (?, ?, ?, ?, {placeholders}, ?)
                """,  # noqa: S608
                [nid, snapshot.project_id, snapshot.type, snapshot.order,
                 *fields, snapshot.created_at],
            )
            _touch(conn, snapshot.project_id)
    except sqlite3.IntegrityError as exc:
        if _is_missing_project(exc):
            raise ProjectNotFoundError(snapshot.project_id) from exc
        raise

    logger.info("Restored %s node into project %s as %s",
                snapshot.type, snapshot.project_id, nid)
    return get_node(conn, nid)  # type: ignore[return-value]
