"""Database layer tests: schema, projects, nodes, text versions and undo.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.cascade_data)
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from cascade.db.connection import get_connection
from cascade.db.migrations import current_version, init_db
from cascade.db.models import Edited, Node, Pristine, apply_edit
from cascade.db.nodes import (
    add_image_node,
    add_link_node,
    add_text_node,
    count_project_nodes,
    delete_node,
    get_node,
    list_project_nodes,
    reorder_nodes,
    restore_node,
    update_text_node,
)
from cascade.db.projects import (
    create_project,
    delete_project,
    ensure_inbox,
    find_project,
    get_inbox,
    get_project,
    list_projects,
    rename_project,
    set_file_handle,
)
from cascade.db.undo import UndoBuffer
from cascade.errors import NodeNotFoundError, ProjectNotFoundError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def project_id(conn: sqlite3.Connection) -> str:
    return create_project(conn, "Research").id


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1

    def test_wal_mode(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA journal_mode").fetchone()
        # In-memory DBs always return 'memory', on-disk returns 'wal'
        assert row[0] in ("wal", "memory")


class TestInitDb:
    def test_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            r[0]
            for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        assert {"projects", "nodes", "schema_version"} <= tables

    def test_migrations_applied(self, conn: sqlite3.Connection) -> None:
        assert current_version(conn) == 1

    def test_init_db_is_idempotent(self, conn: sqlite3.Connection) -> None:
        init_db(conn)
        assert current_version(conn) == 1

    def test_file_data_is_not_indexed(self, conn: sqlite3.Connection) -> None:
        rows = conn.execute(
            "SELECT sql FROM sqlite_master WHERE type = 'index' AND sql IS NOT NULL"
        ).fetchall()
        assert all("file_data" not in r[0] for r in rows)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class TestProjects:
    def test_create_project_defaults(self, conn: sqlite3.Connection) -> None:
        project = create_project(conn, "  Reading list  ")
        assert project.name == "Reading list"
        assert project.project_type == "canvas"
        assert project.is_inbox is False
        assert project.updated_at > 0

    def test_create_project_blank_name_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            create_project(conn, "   ")

    def test_create_project_bad_type_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="Unknown project type"):
            create_project(conn, "X", project_type="mindmap")

    def test_list_projects_most_recent_first(self, conn: sqlite3.Connection) -> None:
        a = create_project(conn, "A")
        b = create_project(conn, "B")
        with conn:
            conn.execute("UPDATE projects SET updated_at = 1 WHERE id = ?", (b.id,))
        add_text_node(conn, a.id, "bump")
        assert list_projects(conn)[0].id == a.id

    def test_find_project_by_id_or_name(self, conn: sqlite3.Connection) -> None:
        p = create_project(conn, "Target")
        assert find_project(conn, p.id).id == p.id  # type: ignore[union-attr]
        assert find_project(conn, "Target").id == p.id  # type: ignore[union-attr]
        assert find_project(conn, "missing") is None

    def test_rename_project(self, conn: sqlite3.Connection, project_id: str) -> None:
        renamed = rename_project(conn, project_id, "Renamed")
        assert renamed.name == "Renamed"

    def test_rename_missing_project_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ProjectNotFoundError):
            rename_project(conn, "nope", "Name")

    def test_set_file_handle(self, conn: sqlite3.Connection, project_id: str) -> None:
        assert set_file_handle(conn, project_id, "/tmp/vault").file_handle == "/tmp/vault"
        assert set_file_handle(conn, project_id, None).file_handle is None

    def test_delete_project_cascades(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "hello")
        assert delete_project(conn, project_id) is True
        assert get_project(conn, project_id) is None
        assert get_node(conn, node.id) is None

    def test_delete_missing_project_returns_false(self, conn: sqlite3.Connection) -> None:
        assert delete_project(conn, "not-there") is False


class TestInbox:
    def test_ensure_inbox_creates_once(self, conn: sqlite3.Connection) -> None:
        first = ensure_inbox(conn)
        second = ensure_inbox(conn)
        assert first.id == second.id
        assert first.is_inbox is True
        assert first.name == "Inbox"
        count = conn.execute("SELECT COUNT(*) FROM projects WHERE is_inbox = 1").fetchone()[0]
        assert count == 1

    def test_second_inbox_rejected_by_index(self, conn: sqlite3.Connection) -> None:
        ensure_inbox(conn)
        with pytest.raises(sqlite3.IntegrityError):
            with conn:
                conn.execute(
                    "INSERT INTO projects (id, name, updated_at, is_inbox) VALUES ('x', 'x', 0, 1)"
                )

    def test_inbox_recreated_after_delete(self, conn: sqlite3.Connection) -> None:
        inbox = ensure_inbox(conn)
        delete_project(conn, inbox.id)
        assert get_inbox(conn) is None
        assert ensure_inbox(conn).id != inbox.id


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class TestAddNodes:
    def test_text_node_is_pristine(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "captured", source_url="https://a.example/")
        assert isinstance(node, Node)
        assert node.text == node.original_text == "captured"
        assert node.edited_text is None
        assert node.has_edited is False
        assert node.version == Pristine(text="captured")
        assert node.source_url == "https://a.example/"

    def test_image_node_keeps_bytes(self, conn: sqlite3.Connection, project_id: str) -> None:
        data = b"\x89PNG" + bytes(96)
        node = add_image_node(conn, project_id, data, "image-1.png")
        assert node.type == "file"
        assert node.file_data == data
        assert node.file_name == "image-1.png"
        assert node.has_edited is False

    def test_link_node(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_link_node(conn, project_id, "https://example.com", title="Example")
        assert node.type == "link"
        assert node.url == "https://example.com"
        assert node.text == "Example"

    def test_order_appends(self, conn: sqlite3.Connection, project_id: str) -> None:
        nodes = [add_text_node(conn, project_id, f"n{i}") for i in range(3)]
        assert [n.order for n in nodes] == [0, 1, 2]
        assert count_project_nodes(conn, project_id) == 3

    def test_order_is_per_project(self, conn: sqlite3.Connection, project_id: str) -> None:
        other = create_project(conn, "Other")
        add_text_node(conn, project_id, "a")
        assert add_text_node(conn, other.id, "b").order == 0

    def test_order_never_reused_after_delete(self, conn: sqlite3.Connection, project_id: str) -> None:
        a = add_text_node(conn, project_id, "a")
        b = add_text_node(conn, project_id, "b")
        delete_node(conn, a.id)
        c = add_text_node(conn, project_id, "c")
        assert c.order > b.order

    def test_missing_project_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ProjectNotFoundError):
            add_text_node(conn, "ghost", "text")
        assert conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0] == 0

    def test_list_in_display_order(self, conn: sqlite3.Connection, project_id: str) -> None:
        ids = [add_text_node(conn, project_id, t).id for t in "abc"]
        assert [n.id for n in list_project_nodes(conn, project_id)] == ids


class TestTextVersions:
    def test_first_edit_freezes_original(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "before")
        edited = update_text_node(conn, node.id, "  after  ")
        assert edited.has_edited is True
        assert edited.original_text == "before"
        assert edited.edited_text == edited.text == "after"
        assert edited.version == Edited(original="before", current="after")

    def test_later_edits_keep_original(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "v0")
        for content in ("v1", "v2", "v3"):
            node = update_text_node(conn, node.id, content)
        assert node.original_text == "v0"
        assert node.text == node.edited_text == "v3"

    def test_noop_edit_writes_nothing(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "same")
        before = get_project(conn, project_id).updated_at  # type: ignore[union-attr]
        changes = conn.total_changes
        result = update_text_node(conn, node.id, "  same\n")
        assert result == node
        assert conn.total_changes == changes
        assert get_project(conn, project_id).updated_at == before  # type: ignore[union-attr]

    def test_noop_after_edit_compares_edited_text(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "orig")
        update_text_node(conn, node.id, "new")
        changes = conn.total_changes
        update_text_node(conn, node.id, "new ")
        assert conn.total_changes == changes

    def test_edit_missing_node_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(NodeNotFoundError, match="Node not found"):
            update_text_node(conn, "fake-id", "x")

    def test_edit_link_node_raises(self, conn: sqlite3.Connection, project_id: str) -> None:
        link = add_link_node(conn, project_id, "https://example.com")
        with pytest.raises(ValueError, match="not text"):
            update_text_node(conn, link.id, "x")

    def test_apply_edit_pure(self) -> None:
        assert apply_edit(Pristine("a"), " a ") is None
        assert apply_edit(Pristine("a"), "b") == Edited("a", "b")
        assert apply_edit(Edited("a", "b"), "c") == Edited("a", "c")


class TestReorder:
    def test_reorder_applies_positions(self, conn: sqlite3.Connection, project_id: str) -> None:
        a, b, c = (add_text_node(conn, project_id, t) for t in "abc")
        reorder_nodes(conn, project_id, [c.id, a.id, b.id])
        assert [n.id for n in list_project_nodes(conn, project_id)] == [c.id, a.id, b.id]

    def test_reorder_is_all_or_nothing(self, conn: sqlite3.Connection, project_id: str) -> None:
        a, b, c = (add_text_node(conn, project_id, t) for t in "abc")
        with pytest.raises(NodeNotFoundError):
            reorder_nodes(conn, project_id, [c.id, a.id, "unknown"])
        assert [(n.id, n.order) for n in list_project_nodes(conn, project_id)] == [
            (a.id, 0), (b.id, 1), (c.id, 2)
        ]

    def test_reorder_rejects_foreign_node(self, conn: sqlite3.Connection, project_id: str) -> None:
        other = create_project(conn, "Other")
        a = add_text_node(conn, project_id, "a")
        foreign = add_text_node(conn, other.id, "x")
        with pytest.raises(NodeNotFoundError):
            reorder_nodes(conn, project_id, [foreign.id, a.id])
        assert get_node(conn, a.id).order == 0  # type: ignore[union-attr]


class TestDeleteRestore:
    def test_delete_returns_snapshot(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "gone")
        snapshot = delete_node(conn, node.id)
        assert snapshot is not None
        assert snapshot.text == "gone"
        assert not hasattr(snapshot, "id")
        assert get_node(conn, node.id) is None

    def test_delete_missing_returns_none(self, conn: sqlite3.Connection) -> None:
        assert delete_node(conn, "not-there") is None

    def test_restore_assigns_new_id(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "keep")
        update_text_node(conn, node.id, "kept")
        restored = restore_node(conn, delete_node(conn, node.id))  # type: ignore[arg-type]
        assert restored.id != node.id
        assert restored.original_text == "keep"
        assert restored.text == "kept"
        assert restored.has_edited is True
        assert restored.created_at == node.created_at

    def test_restore_returns_to_old_position(self, conn: sqlite3.Connection, project_id: str) -> None:
        a, b, c = (add_text_node(conn, project_id, t) for t in "abc")
        snapshot = delete_node(conn, b.id)
        reorder_nodes(conn, project_id, [a.id, c.id])
        restored = restore_node(conn, snapshot)  # type: ignore[arg-type]
        texts = [n.text for n in list_project_nodes(conn, project_id)]
        assert texts == ["a", "b", "c"]
        assert restored.order == 1

    def test_restore_into_deleted_project_raises(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "orphan")
        snapshot = delete_node(conn, node.id)
        delete_project(conn, project_id)
        with pytest.raises(ProjectNotFoundError):
            restore_node(conn, snapshot)  # type: ignore[arg-type]
        assert get_project(conn, project_id) is None


class TestUndoBuffer:
    def test_undo_restores_last_delete(self, conn: sqlite3.Connection, project_id: str) -> None:
        node = add_text_node(conn, project_id, "oops")
        undo = UndoBuffer(ttl=3.0)
        undo.delete(conn, node.id)
        restored = undo.undo(conn)
        assert restored is not None
        assert restored.text == "oops"
        assert undo.undo(conn) is None

    def test_undo_window_expires(self, conn: sqlite3.Connection, project_id: str) -> None:
        now = [100.0]
        undo = UndoBuffer(ttl=3.0, clock=lambda: now[0])
        undo.delete(conn, add_text_node(conn, project_id, "late").id)
        now[0] += 3.5
        assert undo.pending is None
        assert undo.undo(conn) is None
        assert count_project_nodes(conn, project_id) == 0

    def test_only_latest_delete_is_kept(self, conn: sqlite3.Connection, project_id: str) -> None:
        first = add_text_node(conn, project_id, "first")
        second = add_text_node(conn, project_id, "second")
        undo = UndoBuffer()
        undo.delete(conn, first.id)
        undo.delete(conn, second.id)
        assert undo.undo(conn).text == "second"  # type: ignore[union-attr]
        assert undo.undo(conn) is None

    def test_delete_missing_keeps_previous(self, conn: sqlite3.Connection, project_id: str) -> None:
        undo = UndoBuffer()
        undo.delete(conn, add_text_node(conn, project_id, "x").id)
        assert undo.delete(conn, "missing") is None
        assert undo.pending is not None

    def test_discard(self, conn: sqlite3.Connection, project_id: str) -> None:
        undo = UndoBuffer()
        undo.delete(conn, add_text_node(conn, project_id, "x").id)
        undo.discard()
        assert undo.undo(conn) is None
