"""Cascade CLI: entry-point for capture, project and export operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db        → database setup
    project   → create, switch, delete and export projects
    node      → inspect, edit, reorder and delete captured nodes
    capture   → add text, links and images
    serve     → run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from cascade.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from cascade.config import configure_logging, settings
from cascade.db import get_connection, init_db
from cascade.db.migrations import current_version
from cli.commands.capture import capture_app
from cli.commands.node import node_app
from cli.commands.project import project_app

app = typer.Typer(
    name="cascade",
    help="Cascade capture workspace CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    if verbose:
        configure_logging("DEBUG")


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables, apply migrations)."""
    conn = get_connection()
    init_db(conn)
    version = current_version(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path} (schema v{version})")


app.add_typer(project_app, name="project")
app.add_typer(node_app, name="node")
app.add_typer(capture_app, name="capture")


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Port."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    """Run the Cascade HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("cascade.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
