"""Capture commands: add text, links and images to a project.

Each command builds the same data transfer a browser drop would carry and
hands it to the ingestion router, so the CLI stores exactly what dragging
the item onto the panel would.
"""

from __future__ import annotations

import asyncio
import mimetypes
import sqlite3
from pathlib import Path
from typing import Optional

import typer

from cascade.capture.payload import CUSTOM_MIME, CapturePayload
from cascade.capture.transfer import DataTransfer, DroppedFile
from cascade.config import settings
from cascade.db import get_connection, init_db
from cascade.db.models import Node
from cascade.ingest import DropEvent, IngestionRouter
from cascade.relay import BackgroundService, MessageBus
from cli.context import resolve_project

capture_app = typer.Typer(help="Capture text, links and images into a project.")


async def _drop(conn: sqlite3.Connection, transfer: DataTransfer, project_id: str) -> list[Node]:
    """Run one drop through a fresh bus; waits for image downloads to finish."""
    bus = MessageBus()
    background = BackgroundService(bus).start()
    router = IngestionRouter(conn, bus)
    try:
        result = await router.handle_drop(DropEvent(data_transfer=transfer), project_id)
        if result.status == "failed":
            typer.echo(f"❌ {result.error}")
            raise typer.Exit(code=1)
        if result.status == "ignored":
            typer.echo("⚠️  Nothing to capture.")
            raise typer.Exit(code=1)
        if result.completion is not None:
            typer.echo("⏳ Downloading image …")
            try:
                node = await asyncio.wait_for(result.completion, settings.request_timeout)
            except asyncio.TimeoutError:
                typer.echo("❌ Image download timed out.")
                raise typer.Exit(code=1)
            await bus.drain()
            return [node] if node is not None else []
        return result.nodes
    finally:
        router.close()
        background.stop()


def _run(transfer: DataTransfer, project: Optional[str]) -> None:
    conn = get_connection()
    init_db(conn)

    try:
        target = resolve_project(conn, project)
        nodes = asyncio.run(_drop(conn, transfer, target.id))
        if not nodes:
            typer.echo("⚠️  Nothing was stored.")
            raise typer.Exit(code=1)
        for node in nodes:
            typer.echo(f"✅ Added {node.type} node to {target.name}: {node.id}")
    finally:
        conn.close()


_PROJECT = typer.Option(None, "--project", "-p", help="Project name or UUID.")


@capture_app.command("text")
def capture_text(
    text: str = typer.Argument(..., help="Text to capture."),
    source_url: Optional[str] = typer.Option(None, "--source-url", help="Page the text came from."),
    project: Optional[str] = _PROJECT,
) -> None:
    """Capture a snippet of text."""
    transfer = DataTransfer({"text/plain": text})
    if source_url:
        payload = CapturePayload(source_url=source_url, type="text", content=text)
        transfer.set_data(CUSTOM_MIME, payload.to_json())
    _run(transfer, project)


@capture_app.command("url")
def capture_url(
    url: str = typer.Argument(..., help="URL to capture as a link (or image, by extension)."),
    title: Optional[str] = typer.Option(None, "--title", help="Link title."),
    source_url: Optional[str] = typer.Option(None, "--source-url", help="Page the link was on."),
    project: Optional[str] = _PROJECT,
) -> None:
    """Capture a link; URLs ending in an image extension are downloaded."""
    transfer = DataTransfer({"text/uri-list": url, "text/plain": url})
    if title or source_url:
        payload = CapturePayload(
            source_url=source_url or url, type="link", content=url, link_title=title
        )
        transfer.set_data(CUSTOM_MIME, payload.to_json())
    _run(transfer, project)


@capture_app.command("file")
def capture_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image file to capture."),
    project: Optional[str] = _PROJECT,
) -> None:
    """Capture a local image file."""
    mime_type = mimetypes.guess_type(path.name)[0] or ""
    if not mime_type.startswith("image/"):
        typer.echo(f"❌ Not an image: {path.name}")
        raise typer.Exit(code=1)
    dropped = DroppedFile(data=path.read_bytes(), mime_type=mime_type, name=path.name)
    _run(DataTransfer(files=[dropped]), project)
