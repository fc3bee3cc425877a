"""Background (privileged) context.

Handles the relay requests sent by the capture script and the panel:

    setDragPayload  → store in the relay cache            → {success: true}
    getDragPayload  → take from the relay cache           → {success, payload}
    getFavicon      → icon-service URL for a link         → {success, favicon}
    downloadImage   → fetch, then post ``imageDownloaded`` → {success, error?}

The background context never writes to storage; downloaded images are
handed to whoever listens for the ``imageDownloaded`` broadcast.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from cascade.capture.favicon import favicon_for
from cascade.errors import ImageFetchError
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.cache import RelayCache
from cascade.relay.image_fetch import ImageFetchRelay
from cascade.relay.messages import (
    DownloadImage,
    GetDragPayload,
    GetFavicon,
    RelayReply,
    SetDragPayload,
)

logger = logging.getLogger(__name__)


class BackgroundService:
    def __init__(
        self,
        bus: MessageBus,
        cache: Optional[RelayCache] = None,
        fetcher: Optional[ImageFetchRelay] = None,
    ) -> None:
        self.bus = bus
        self.cache = cache or RelayCache()
        self.fetcher = fetcher or ImageFetchRelay()

    def start(self) -> "BackgroundService":
        self.bus.register(BACKGROUND, self.handle)
        logger.info("Background service started")
        return self

    def stop(self) -> None:
        self.bus.unregister(BACKGROUND)

    async def handle(self, message: BaseModel) -> RelayReply:
        if isinstance(message, SetDragPayload):
            self.cache.set(message.payload)
            return RelayReply(success=True)

        if isinstance(message, GetDragPayload):
            return RelayReply(success=True, payload=self.cache.take())

        if isinstance(message, GetFavicon):
            icon = favicon_for(message.url)
            if icon is None:
                return RelayReply(success=False, error=f"Invalid URL: {message.url!r}")
            return RelayReply(success=True, favicon=icon)

        if isinstance(message, DownloadImage):
            return await self._download_image(message)

        return RelayReply(success=False, error=f"Unknown message: {type(message).__name__}")

    async def _download_image(self, request: DownloadImage) -> RelayReply:
        try:
            done = await self.fetcher.download(request)
        except ImageFetchError as exc:
            logger.warning("Image download failed for %s: %s", request.url, exc)
            return RelayReply(success=False, error=str(exc), status_code=exc.status_code)

        self.bus.post(done)
        return RelayReply(success=True)
