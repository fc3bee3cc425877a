"""Project management commands."""

from pathlib import Path
from typing import Optional

import typer

from cascade.db import get_connection, init_db
from cascade.db.nodes import count_project_nodes
from cascade.db.projects import (
    create_project,
    delete_project,
    ensure_inbox,
    find_project,
    list_projects,
    rename_project,
    set_file_handle,
    touch_project,
)
from cascade.errors import ExportError
from cascade.export import LocalFolder, export_project, export_project_to_folder
from cli.context import activate, load_context, require_context, resolve_project, save_context

project_app = typer.Typer(help="Manage capture projects.")


@project_app.command("new")
def project_new(
    name: str = typer.Argument(..., help="Name of the new project."),
    project_type: str = typer.Option("canvas", "--type", help="canvas | markdown"),
) -> None:
    """Create a new project and switch to it."""
    conn = get_connection()
    init_db(conn)

    try:
        try:
            project = create_project(conn, name, project_type)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1)
        typer.echo(f"✅ Project created: {project.name} ({project.id})")

        activate(project)
        typer.echo(f"📂 Switched to project: {project.name}")
    finally:
        conn.close()


@project_app.command("list")
def project_list() -> None:
    """List all projects, most recently updated first."""
    conn = get_connection()
    init_db(conn)

    try:
        projects = list_projects(conn)
        if not projects:
            typer.echo("No projects found.")
            return

        active_id = load_context().active_project_id

        typer.echo("Projects:")
        for p in projects:
            marker = "*" if p.id == active_id else " "
            inbox = " (inbox)" if p.is_inbox else ""
            count = count_project_nodes(conn, p.id)
            typer.echo(f"{marker} {p.name}{inbox} \t{count} nodes \t[{p.id}]")
    finally:
        conn.close()


@project_app.command("switch")
def project_switch(
    identifier: str = typer.Argument(..., help="Project name or UUID.")
) -> None:
    """Switch the active project context."""
    conn = get_connection()
    init_db(conn)

    try:
        target = find_project(conn, identifier)
        if not target:
            typer.echo(f"❌ Project '{identifier}' not found.")
            raise typer.Exit(code=1)

        touch_project(conn, target.id)
        activate(target)
        typer.echo(f"📂 Switched to project: {target.name}")
    finally:
        conn.close()


@project_app.command("inbox")
def project_inbox() -> None:
    """Switch to the inbox, creating it if needed."""
    conn = get_connection()
    init_db(conn)

    try:
        inbox = ensure_inbox(conn)
        activate(inbox)
        typer.echo(f"📂 Switched to project: {inbox.name}")
    finally:
        conn.close()


@project_app.command("rename")
@require_context
def project_rename(
    name: str = typer.Argument(..., help="New name for the active project.")
) -> None:
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        try:
            project = rename_project(conn, ctx.active_project_id, name)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1)
        activate(project)
        typer.echo(f"✅ Renamed to: {project.name}")
    finally:
        conn.close()


@project_app.command("delete")
def project_delete(
    identifier: str = typer.Argument(..., help="Project name or UUID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a project and all of its nodes."""
    conn = get_connection()
    init_db(conn)

    try:
        target = find_project(conn, identifier)
        if not target:
            typer.echo(f"❌ Project '{identifier}' not found.")
            raise typer.Exit(code=1)

        count = count_project_nodes(conn, target.id)
        if not yes and not typer.confirm(f"Delete '{target.name}' and its {count} nodes?"):
            raise typer.Abort()

        delete_project(conn, target.id)
        typer.echo(f"🗑️  Deleted project: {target.name}")

        ctx = load_context()
        if ctx.active_project_id == target.id:
            ctx.active_project_id = None
            ctx.active_project_name = None
            save_context(ctx)
    finally:
        conn.close()


@project_app.command("export")
def project_export(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project name or UUID."),
    output: Path = typer.Option(None, help="Output zip path. Defaults to <project_name>.zip"),
    to_folder: Path = typer.Option(
        None, "--to-folder", help="Write the .canvas file and attachments into this folder."
    ),
    linked: bool = typer.Option(
        False, "--linked", help="Re-export into the folder remembered from the last --to-folder export."
    ),
) -> None:
    """Export a project as an Obsidian canvas."""
    conn = get_connection()
    init_db(conn)

    try:
        target = resolve_project(conn, project)
        folder: Optional[LocalFolder] = None
        if linked:
            if not target.file_handle:
                typer.echo(f"❌ Project '{target.name}' has no linked folder. Export once with --to-folder.")
                raise typer.Exit(code=1)
            folder = LocalFolder.from_reference(target.file_handle)
        elif to_folder is not None:
            folder = LocalFolder(to_folder)

        try:
            if folder is not None:
                result = export_project_to_folder(conn, target.id, folder)
                if result.ok:
                    set_file_handle(conn, target.id, folder.reference)
            else:
                result = export_project(conn, target.id)
        except ExportError as exc:
            typer.echo(f"❌ Export failed: {exc}")
            raise typer.Exit(code=1)

        if not result.ok:
            typer.echo(f"⚠️  {result.message}")
            raise typer.Exit(code=1)

        if folder is not None:
            typer.echo(f"✅ Exported {result.node_count} nodes to {(folder.root / result.filename).absolute()}")
            return

        output = output or Path(result.filename)
        output.write_bytes(result.data)
        typer.echo(f"✅ Exported {result.node_count} nodes to {output.absolute()}")
    finally:
        conn.close()
