"""Persistent state management for the Cascade CLI.

Tracks the "active project".
Stored in `~/.cascade_cli/context.json`.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass
from functools import wraps
from pathlib import Path
from typing import Callable, Optional

import typer

from cascade.config import settings
from cascade.db.models import Project
from cascade.db.projects import ensure_inbox, find_project, get_project


@dataclass
class CliContext:
    active_project_id: str | None = None
    active_project_name: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def activate(project: Project) -> None:
    ctx = load_context()
    ctx.active_project_id = project.id
    ctx.active_project_name = project.name
    save_context(ctx)


def resolve_project(conn: sqlite3.Connection, identifier: Optional[str] = None) -> Project:
    """Pick the project a command works on.

    An explicit *identifier* (id or name) wins; otherwise the active project
    is used.  With no active project, or one that has since been deleted,
    the inbox is the target.
    """
    if identifier:
        project = find_project(conn, identifier)
        if project is None:
            typer.echo(f"❌ Project '{identifier}' not found.")
            raise typer.Exit(code=1)
        return project

    ctx = load_context()
    if ctx.active_project_id:
        project = get_project(conn, ctx.active_project_id)
        if project is not None:
            return project
    return ensure_inbox(conn)


def require_context(func: Callable) -> Callable:
    """Decorator for CLI commands that require an active project.

    Aborts execution if no project is active; the command itself calls
    :func:`load_context` when it needs the data.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_project_id:
            typer.echo("❌ No active project selected.")
            typer.echo("Run 'project new <name>' or 'project switch <name>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
