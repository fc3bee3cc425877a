"""Database initialisation and migration helpers.

``init_db(conn)`` is idempotent — safe to call on an existing database.
``migrate(conn)`` runs incremental schema changes tracked in a version table.
"""

from __future__ import annotations

import logging
import sqlite3

from cascade.config import settings

logger = logging.getLogger(__name__)

# (version, sql) pairs applied in order by ``migrate``.
MIGRATIONS: list[tuple[int, str]] = [
    # Projects created before project types existed are canvases.
    (
        1,
        "UPDATE projects SET project_type = 'canvas' "
        "WHERE project_type IS NULL OR project_type = ''",
    ),
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes, then apply pending migrations.

    This function is **idempotent**: every DDL statement uses ``IF NOT EXISTS``
    so calling it multiple times on the same database is safe.
    """
    sql = settings.schema_path.read_text(encoding="utf-8")
    # executescript() issues an implicit COMMIT first; fine for DDL.
    conn.executescript(sql)
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the internal schema-version tracking table if absent."""
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version  INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
            )
            """
        )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection) -> None:
    """Run any pending incremental migrations.

    Each migration is applied in its own transaction together with the
    ``schema_version`` row that records it.
    """
    applied = current_version(conn)
    for version, sql in MIGRATIONS:
        if version > applied:
            logger.info("Applying schema migration %d", version)
            with conn:
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
