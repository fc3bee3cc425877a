"""Credential-less image download for the background context.

The capturing page cannot fetch cross-origin images itself, so the
background context downloads them, names the file after the current time
and the response content type, and encodes the bytes as a base64 ``data:``
URL that can travel inside a message.  Any failure is raised as
:class:`~cascade.errors.ImageFetchError` for the caller to turn into a
structured reply.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from time import time
from typing import Callable, Optional
from urllib.parse import unquote_to_bytes

import httpx

from cascade.config import settings
from cascade.errors import ImageFetchError
from cascade.relay.messages import DownloadImage, ImageDownloaded

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "png"

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; Cascade/0.3; image-relay)",
    "Accept": "image/*,*/*;q=0.8",
}

_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*),(?P<body>.*)$", re.DOTALL)


# ---------------------------------------------------------------------------
# Naming / encoding helpers
# ---------------------------------------------------------------------------

def extension_for(content_type: Optional[str]) -> str:
    """File extension for a content type; ``png`` when absent or unparsable.

    ``image/svg+xml`` maps to ``svg``; parameters such as ``; charset=`` are
    ignored.
    """
    if not content_type or "/" not in content_type:
        return DEFAULT_EXTENSION
    subtype = content_type.split("/", 1)[1].split(";", 1)[0].strip().lower()
    subtype = subtype.split("+", 1)[0]
    if not subtype or not re.fullmatch(r"[a-z0-9.-]+", subtype):
        return DEFAULT_EXTENSION
    return subtype


def image_file_name(content_type: Optional[str], now_ms: Optional[int] = None) -> str:
    stamp = int(time() * 1000) if now_ms is None else now_ms
    return f"image-{stamp}.{extension_for(content_type)}"


def encode_data_url(data: bytes, content_type: str) -> str:
    mime = content_type.split(";", 1)[0].strip() or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(value: str) -> bytes:
    """Decode a base64 ``data:`` URL (or bare base64 text) back to bytes.

    Raises:
        ImageFetchError: If the text is not valid base64.
    """
    body = value
    match = _DATA_URL.match(value)
    if match:
        if ";base64" not in match.group("params").lower():
            raise ImageFetchError("Data URL is not base64 encoded")
        body = match.group("body")
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageFetchError("Base64 conversion failed") from exc


# ---------------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------------

class ImageFetchRelay:
    """Downloads images with a fresh, cookie-less ``httpx`` client."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self.timeout = settings.request_timeout if timeout is None else timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=_DEFAULT_HEADERS,
            timeout=self.timeout,
            follow_redirects=True,
        )

    async def download(self, request: DownloadImage) -> ImageDownloaded:
        """Fetch ``request.url`` and return the completion message.

        Raises:
            ImageFetchError: On transport errors, non-2xx statuses, and
                encoding failures.
        """
        if request.url[:5].lower() == "data:":
            return self._from_data_url(request)

        logger.info("Downloading image %s for project %s", request.url, request.project_id)
        try:
            async with self._client_factory() as client:
                response = await client.get(request.url)
        except httpx.HTTPError as exc:
            raise ImageFetchError(f"Network error: {exc}") from exc

        if not response.is_success:
            raise ImageFetchError(
                f"HTTP error: {response.status_code}", status_code=response.status_code
            )

        content_type = response.headers.get("content-type") or f"image/{DEFAULT_EXTENSION}"
        file_name = image_file_name(content_type)
        try:
            encoded = encode_data_url(response.content, content_type)
        except (binascii.Error, ValueError) as exc:
            raise ImageFetchError("Base64 conversion failed") from exc

        logger.debug("Image downloaded: %s (%d bytes)", file_name, len(response.content))
        return ImageDownloaded(
            task_id=request.task_id,
            project_id=request.project_id,
            file_name=file_name,
            base64=encoded,
            source_url=request.source_url,
        )

    def _from_data_url(self, request: DownloadImage) -> ImageDownloaded:
        """Inline images are decoded in place; nothing goes over the network."""
        match = _DATA_URL.match(request.url)
        if not match:
            raise ImageFetchError("Malformed data URL")
        if ";base64" in match.group("params").lower():
            data = decode_data_url(request.url)
        else:
            data = unquote_to_bytes(match.group("body"))

        content_type = match.group("mime").strip() or f"image/{DEFAULT_EXTENSION}"
        file_name = image_file_name(content_type)
        logger.debug("Inline image decoded: %s (%d bytes)", file_name, len(data))
        return ImageDownloaded(
            task_id=request.task_id,
            project_id=request.project_id,
            file_name=file_name,
            base64=encode_data_url(data, content_type),
            source_url=request.source_url,
        )
