"""Ingestion router: turns a drop or paste into a storage write.

The router walks an ordered list of source resolvers (see
:mod:`cascade.ingest.sources`), takes the first capture any of them
produces and performs the single store call it calls for.

Images referenced by URL take two hops: the router asks the background
context to download them and returns a ``pending`` result straight away.
The node is written later, when the matching ``imageDownloaded`` broadcast
arrives.  Each download is tracked by its task id; completions for
unknown tasks, or for projects deleted in the meantime, are dropped
without writing anything.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from cascade.capture.transfer import DataTransfer, DroppedFile
from cascade.db.models import Node
from cascade.db.nodes import add_image_node, add_link_node, add_text_node
from cascade.errors import DeliveryError, ImageFetchError, ProjectNotFoundError
from cascade.ingest.events import (
    Capture,
    DropEvent,
    ImageFilesCapture,
    IngestResult,
    LinkCapture,
    PasteEvent,
    Rejected,
    RemoteImageCapture,
    TextCapture,
)
from cascade.ingest.sources import SourceResolver, drop_sources, paste_sources
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.image_fetch import decode_data_url, image_file_name
from cascade.relay.messages import DownloadImage, ImageDownloaded

logger = logging.getLogger(__name__)

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".svg", ".avif")


@dataclass
class _PendingImage:
    project_id: str
    future: "asyncio.Future[Optional[Node]]"


def _stored_file_name(file: DroppedFile, index: int) -> str:
    """Keep a real image file name, otherwise generate one from the type."""
    if file.name and file.name.lower().endswith(_IMAGE_SUFFIXES):
        return file.name
    name = image_file_name(file.mime_type)
    if index:
        stem, _, ext = name.rpartition(".")
        name = f"{stem}-{index}.{ext}"
    return name


class IngestionRouter:
    def __init__(
        self,
        conn: sqlite3.Connection,
        bus: Optional[MessageBus] = None,
        on_success: Optional[Callable[[IngestResult], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        drop_resolvers: Optional[Sequence[SourceResolver]] = None,
        paste_resolvers: Optional[Sequence[SourceResolver]] = None,
    ) -> None:
        self.conn = conn
        self.bus = bus
        self.on_success = on_success
        self.on_error = on_error
        self._drop = list(drop_resolvers) if drop_resolvers is not None else drop_sources(bus)
        self._paste = list(paste_resolvers) if paste_resolvers is not None else paste_sources()
        self._pending: dict[str, _PendingImage] = {}
        self._unsubscribe = bus.subscribe(self._on_broadcast) if bus is not None else None

    def close(self) -> None:
        """Stop listening for completions and abandon pending downloads."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_result(None)
        self._pending.clear()

    @property
    def pending_downloads(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def handle_drop(self, event: DropEvent, project_id: str) -> IngestResult:
        return await self._route(event.data_transfer, project_id, self._drop)

    async def handle_paste(self, event: PasteEvent, project_id: str) -> IngestResult:
        if event.target.is_editable:
            return IngestResult(status="skipped")
        return await self._route(event.clipboard, project_id, self._paste)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    async def _route(
        self,
        transfer: DataTransfer,
        project_id: str,
        resolvers: Sequence[SourceResolver],
    ) -> IngestResult:
        for resolver in resolvers:
            capture = await resolver.resolve(transfer)
            if capture is None:
                continue
            result = await self._apply(capture, project_id)
            result.source = resolver.name
            self._notify(result)
            return result
        logger.debug("No usable data in event for project %s", project_id)
        return IngestResult(status="ignored")

    async def _apply(self, capture: Capture, project_id: str) -> IngestResult:
        if isinstance(capture, Rejected):
            logger.debug("Capture rejected: %s", capture.reason)
            return IngestResult(status="ignored", error=capture.reason)

        if isinstance(capture, TextCapture):
            node = add_text_node(
                self.conn, project_id, capture.text, capture.source_url, capture.source_icon
            )
            return IngestResult(status="created", nodes=[node])

        if isinstance(capture, LinkCapture):
            node = add_link_node(
                self.conn,
                project_id,
                capture.url,
                title=capture.title,
                source_icon=capture.source_icon,
                source_url=capture.source_url,
            )
            return IngestResult(status="created", nodes=[node])

        if isinstance(capture, ImageFilesCapture):
            nodes = [
                add_image_node(self.conn, project_id, f.data, _stored_file_name(f, i))
                for i, f in enumerate(capture.files)
            ]
            return IngestResult(status="created" if nodes else "ignored", nodes=nodes)

        if isinstance(capture, RemoteImageCapture):
            return await self._request_image(capture, project_id)

        raise TypeError(f"Unhandled capture {capture!r}")

    async def _request_image(
        self, capture: RemoteImageCapture, project_id: str
    ) -> IngestResult:
        if self.bus is None:
            return IngestResult(status="failed", error="Background context unavailable")

        request = DownloadImage(url=capture.url, project_id=project_id, source_url=capture.source_url)
        future: asyncio.Future[Optional[Node]] = asyncio.get_running_loop().create_future()
        # Registered before sending so a fast completion is never missed.
        self._pending[request.task_id] = _PendingImage(project_id=project_id, future=future)

        try:
            reply = await self.bus.request(BACKGROUND, request)
        except DeliveryError as exc:
            self._pending.pop(request.task_id, None)
            return IngestResult(status="failed", error=str(exc))

        if not reply.success:
            self._pending.pop(request.task_id, None)
            return IngestResult(status="failed", task_id=request.task_id, error=reply.error)

        logger.info("Image download initiated: %s", capture.url)
        return IngestResult(status="pending", task_id=request.task_id, completion=future)

    # ------------------------------------------------------------------
    # Image completion
    # ------------------------------------------------------------------
    async def _on_broadcast(self, message: BaseModel) -> None:
        if not isinstance(message, ImageDownloaded):
            return

        pending = self._pending.get(message.task_id)
        if pending is None:
            logger.debug("Ignoring completion for unknown task %s", message.task_id)
            return
        del self._pending[message.task_id]

        if pending.project_id != message.project_id:
            logger.warning("Completion %s names the wrong project; dropped", message.task_id)
            pending.future.set_result(None)
            return

        try:
            data = decode_data_url(message.base64)
        except ImageFetchError as exc:
            logger.warning("Could not decode downloaded image %s: %s", message.file_name, exc)
            pending.future.set_result(None)
            self._alert(f"Image download failed: {exc}")
            return

        try:
            node = add_image_node(
                self.conn, message.project_id, data, message.file_name, message.source_url
            )
        except ProjectNotFoundError:
            logger.info("Project %s was deleted before its image arrived", message.project_id)
            pending.future.set_result(None)
            return
        except Exception as exc:
            pending.future.set_exception(exc)
            raise

        pending.future.set_result(node)
        self._notify(
            IngestResult(status="created", source="image-relay", nodes=[node], task_id=message.task_id)
        )

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------
    def _notify(self, result: IngestResult) -> None:
        if result.status == "failed":
            self._alert(f"Image download failed: {result.error}")
        elif result.ok and self.on_success is not None:
            self.on_success(result)

    def _alert(self, message: str) -> None:
        logger.warning(message)
        if self.on_error is not None:
            self.on_error(message)
