"""Node commands: inspect, edit, reorder and delete captured items."""

from typing import List, Optional

import typer

from cascade.db import get_connection, init_db
from cascade.db.models import Node
from cascade.db.nodes import (
    delete_node,
    get_node,
    list_project_nodes,
    reorder_nodes,
    update_text_node,
)
from cascade.errors import NotFoundError
from cli.context import resolve_project

node_app = typer.Typer(help="Inspect and edit the nodes of a project.")


def _summary(node: Node, width: int = 60) -> str:
    if node.type == "file":
        size = len(node.file_data) if node.file_data else 0
        return f"{node.file_name} ({size} bytes)"
    if node.type == "link":
        return node.url or ""
    text = (node.text or "").replace("\n", " ")
    return text if len(text) <= width else text[: width - 1] + "…"


@node_app.command("list")
def node_list(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project name or UUID."),
) -> None:
    """List the nodes of a project in display order."""
    conn = get_connection()
    init_db(conn)

    try:
        target = resolve_project(conn, project)
        nodes = list_project_nodes(conn, target.id)
        if not nodes:
            typer.echo(f"No nodes in {target.name}.")
            return
        typer.echo(f"{target.name}:")
        for n in nodes:
            edited = " *" if n.has_edited else ""
            typer.echo(f"  {n.order:>3}  [{n.type}]{edited}  {_summary(n)}  \t{n.id}")
    finally:
        conn.close()


@node_app.command("show")
def node_show(node_id: str = typer.Argument(..., help="Node UUID.")) -> None:
    """Print one node in full."""
    conn = get_connection()
    init_db(conn)

    try:
        node = get_node(conn, node_id)
        if node is None:
            typer.echo(f"❌ Node '{node_id}' not found.")
            raise typer.Exit(code=1)

        typer.echo(f"ID      : {node.id}")
        typer.echo(f"Type    : {node.type}")
        typer.echo(f"Order   : {node.order}")
        if node.source_url:
            typer.echo(f"Source  : {node.source_url}")
        if node.type == "link":
            typer.echo(f"URL     : {node.url}")
        if node.type == "file":
            typer.echo(f"File    : {_summary(node)}")
        if node.type == "text":
            typer.echo(f"Edited  : {'yes' if node.has_edited else 'no'}")
            typer.echo("")
            typer.echo(node.text or "")
            if node.has_edited:
                typer.echo("\n--- original ---")
                typer.echo(node.original_text or "")
    finally:
        conn.close()


@node_app.command("edit")
def node_edit(
    node_id: str = typer.Argument(..., help="Node UUID."),
    content: str = typer.Argument(..., help="New text content."),
) -> None:
    """Replace the text of a text node; the original is kept."""
    conn = get_connection()
    init_db(conn)

    try:
        before = get_node(conn, node_id)
        try:
            node = update_text_node(conn, node_id, content)
        except NotFoundError:
            typer.echo(f"❌ Node '{node_id}' not found.")
            raise typer.Exit(code=1)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1)

        if before is not None and node.text == before.text:
            typer.echo("No changes.")
        else:
            typer.echo(f"✅ Updated node {node.id}")
    finally:
        conn.close()


@node_app.command("reorder")
def node_reorder(
    node_ids: List[str] = typer.Argument(..., help="Node UUIDs in their new order."),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project name or UUID."),
) -> None:
    """Set the display order of a project's nodes."""
    conn = get_connection()
    init_db(conn)

    try:
        target = resolve_project(conn, project)
        try:
            reorder_nodes(conn, target.id, node_ids)
        except NotFoundError as exc:
            typer.echo(f"❌ {exc} (nothing was changed)")
            raise typer.Exit(code=1)
        typer.echo(f"✅ Reordered {len(node_ids)} nodes in {target.name}")
    finally:
        conn.close()


@node_app.command("delete")
def node_delete(node_id: str = typer.Argument(..., help="Node UUID.")) -> None:
    conn = get_connection()
    init_db(conn)

    try:
        snapshot = delete_node(conn, node_id)
        if snapshot is None:
            typer.echo(f"❌ Node '{node_id}' not found.")
            raise typer.Exit(code=1)
        typer.echo(f"🗑️  Deleted {snapshot.type} node {node_id}")
    finally:
        conn.close()
