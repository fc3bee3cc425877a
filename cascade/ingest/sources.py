"""Ordered source resolvers for drop and paste events.

Each resolver looks at one kind of data on the event and either returns a
capture or ``None`` ("not mine").  The router asks them in priority order
and uses the first answer; a :class:`~cascade.ingest.events.Rejected`
answer ends the search without a write.

Priority (drop):

1. custom payload attached by the capture script
2. payload recovered from the background relay cache
3. dropped files (images only)
4. ``text/uri-list``
5. ``text/plain``

Paste uses the same list minus the relay cache, which only ever holds
drag payloads.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol
from urllib.parse import urlsplit

from cascade.capture.favicon import favicon_for
from cascade.capture.payload import CUSTOM_MIME, CapturePayload
from cascade.capture.transfer import DataTransfer
from cascade.errors import DeliveryError, PayloadError
from cascade.ingest.events import (
    Capture,
    ImageFilesCapture,
    LinkCapture,
    Rejected,
    RemoteImageCapture,
    TextCapture,
)
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.messages import GetDragPayload

logger = logging.getLogger(__name__)

IMAGE_URL = re.compile(r"\.(jpeg|jpg|gif|png|webp)$", re.IGNORECASE)
BARE_HTTP_URL = re.compile(r"^https?://\S+$", re.IGNORECASE)


class SourceResolver(Protocol):
    name: str

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def is_valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and (parts.netloc or parts.scheme in ("mailto", "file")))


def link_or_text(value: str) -> Capture:
    """A link capture for a parsable URL, otherwise plain text."""
    if is_valid_url(value):
        return LinkCapture(url=value, title=value, source_icon=favicon_for(value))
    logger.debug("Not a parsable URL, keeping as text: %r", value)
    return TextCapture(text=value)


def capture_from_payload(payload: CapturePayload) -> Capture:
    """Map a capture payload onto the write it calls for."""
    if not payload.is_actionable:
        return Rejected(reason=f"nothing to capture in {payload.type} payload")

    content = payload.content or ""
    if payload.type == "text":
        return TextCapture(
            text=content,
            source_url=payload.source_url,
            source_icon=payload.source_icon or favicon_for(payload.source_url),
        )
    if payload.type == "link":
        # The target's own icon is preferred over the page it was found on.
        return LinkCapture(
            url=content,
            title=payload.link_title or payload.source_title or content,
            source_icon=(
                favicon_for(content)
                or payload.source_icon
                or favicon_for(payload.source_url)
            ),
            source_url=payload.source_url,
        )
    return RemoteImageCapture(url=content, source_url=payload.source_url)


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

class CustomPayloadSource:
    name = "custom-payload"

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        raw = transfer.get_data(CUSTOM_MIME)
        if not raw:
            return None
        try:
            payload = CapturePayload.parse(raw)
        except PayloadError as exc:
            logger.warning("Discarding malformed drag payload: %s", exc)
            return Rejected(reason="malformed custom payload")
        return capture_from_payload(payload)


class RelayCacheSource:
    name = "relay-cache"

    def __init__(self, bus: Optional[MessageBus]) -> None:
        self.bus = bus

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        if self.bus is None:
            return None
        try:
            reply = await self.bus.request(BACKGROUND, GetDragPayload())
        except DeliveryError:
            logger.debug("Background context unavailable; no relayed payload")
            return None
        if not reply.success or reply.payload is None:
            return None
        logger.debug("Recovered payload from relay cache")
        return capture_from_payload(reply.payload)


class FileListSource:
    name = "files"

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        if not transfer.files:
            return None
        images = [f for f in transfer.files if f.is_image]
        skipped = len(transfer.files) - len(images)
        if skipped:
            logger.debug("Ignoring %d non-image file(s)", skipped)
        return ImageFilesCapture(files=images)


class UriListSource:
    name = "uri-list"

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        raw = transfer.get_data("text/uri-list")
        # RFC 2483: one URI per line, "#" starts a comment line.
        uris = [
            line.strip()
            for line in raw.splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
        if not uris:
            return None
        url = uris[0]
        if IMAGE_URL.search(url):
            return RemoteImageCapture(url=url)
        return link_or_text(url)


class PlainTextSource:
    name = "text"

    async def resolve(self, transfer: DataTransfer) -> Optional[Capture]:
        text = transfer.get_data("text/plain").strip()
        if not text:
            return None
        if BARE_HTTP_URL.match(text):
            return LinkCapture(url=text, title=text, source_icon=favicon_for(text))
        return TextCapture(text=text)


def drop_sources(bus: Optional[MessageBus]) -> list[SourceResolver]:
    return [
        CustomPayloadSource(),
        RelayCacheSource(bus),
        FileListSource(),
        UriListSource(),
        PlainTextSource(),
    ]


def paste_sources() -> list[SourceResolver]:
    return [
        CustomPayloadSource(),
        FileListSource(),
        UriListSource(),
        PlainTextSource(),
    ]
