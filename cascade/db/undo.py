"""Single-slot undo buffer for node deletion.

Deleting a node offers a short window in which the delete can be undone.
Only the most recent deletion is kept; remembering a new one replaces it.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Callable, Optional

from cascade.config import settings
from cascade.db.models import Node, NodeSnapshot
from cascade.db.nodes import delete_node, restore_node

logger = logging.getLogger(__name__)


class UndoBuffer:
    """Holds the snapshot of the last deleted node for ``ttl`` seconds."""

    def __init__(
        self,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = settings.undo_ttl if ttl is None else ttl
        self._clock = clock
        self._snapshot: Optional[NodeSnapshot] = None
        self._expires_at = 0.0

    @property
    def pending(self) -> Optional[NodeSnapshot]:
        """The snapshot that :meth:`undo` would restore, if still in time."""
        if self._snapshot is not None and self._clock() >= self._expires_at:
            self._snapshot = None
        return self._snapshot

    def remember(self, snapshot: NodeSnapshot) -> None:
        self._snapshot = snapshot
        self._expires_at = self._clock() + self.ttl

    def discard(self) -> None:
        self._snapshot = None

    def delete(self, conn: sqlite3.Connection, node_id: str) -> Optional[NodeSnapshot]:
        """Delete *node_id* and keep its snapshot for undo."""
        snapshot = delete_node(conn, node_id)
        if snapshot is not None:
            self.remember(snapshot)
        return snapshot

    def undo(self, conn: sqlite3.Connection) -> Optional[Node]:
        """Restore the remembered node; ``None`` if there is nothing to undo.

        The buffer is emptied before the restore is attempted, so a failing
        restore (e.g. the project was deleted meanwhile) is not retried.
        """
        snapshot = self.pending
        if snapshot is None:
            return None
        self._snapshot = None
        node = restore_node(conn, snapshot)
        logger.info("Undid delete of %s node in project %s", node.type, node.project_id)
        return node
