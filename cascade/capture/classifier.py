"""Drag-start classifier for the capturing page.

:func:`classify` decides what is being dragged, first match wins:

1. an image element            → ``image`` (content: image URL)
2. a link, or inside one       → ``link``  (content: link URL)
3. a non-empty text selection  → ``text``  (content: trimmed selection)
4. anything else               → ``unknown``

:class:`DragCapture` runs the classifier on a drag gesture, attaches an
actionable payload to the drag data under :data:`CUSTOM_MIME` and mirrors
it into the background relay cache in case the browser strips the custom
type before the drop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

from cascade.capture.favicon import page_favicon
from cascade.capture.payload import CUSTOM_MIME, CapturePayload
from cascade.capture.transfer import DataTransfer
from cascade.errors import DeliveryError
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.messages import SetDragPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Page model
# ---------------------------------------------------------------------------

@dataclass
class Element:
    """Just enough of a DOM element for classification."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    parent: Optional["Element"] = field(default=None, repr=False)

    def closest(self, tag: str) -> Optional["Element"]:
        """This element or its nearest ancestor with the given tag."""
        node: Optional[Element] = self
        while node is not None:
            if node.tag.lower() == tag.lower():
                return node
            node = node.parent
        return None


@dataclass
class PageContext:
    url: str
    title: str = ""
    html: Optional[str] = field(default=None, repr=False)


@dataclass
class DragGesture:
    page: PageContext
    target: Optional[Element] = None
    selection: str = ""
    data_transfer: DataTransfer = field(default_factory=DataTransfer)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def _resolve(page_url: str, ref: str) -> str:
    try:
        return urljoin(page_url, ref)
    except ValueError:
        logger.debug("Unresolvable reference %r on %s", ref, page_url)
        return ref


def _source_icon(page: PageContext) -> Optional[str]:
    try:
        return page_favicon(page.html, page.url)
    except Exception:  # noqa: BLE001 - an icon is never worth failing a capture
        logger.debug("Favicon lookup failed for %s", page.url, exc_info=True)
        return None


def classify(
    page: PageContext,
    target: Optional[Element],
    selection: str = "",
) -> CapturePayload:
    """Build the capture payload for a drag starting on *target*."""
    base = {
        "source_url": page.url,
        "source_title": page.title,
        "source_icon": _source_icon(page),
    }

    if target is not None and target.tag.lower() == "img" and target.attrs.get("src"):
        return CapturePayload(
            **base, type="image", content=_resolve(page.url, target.attrs["src"])
        )

    anchor = target.closest("a") if target is not None else None
    if anchor is not None and anchor.attrs.get("href"):
        title = anchor.text.strip() or anchor.attrs.get("title") or None
        return CapturePayload(
            **base,
            type="link",
            content=_resolve(page.url, anchor.attrs["href"]),
            link_title=title,
        )

    selected = (selection or "").strip()
    if selected:
        return CapturePayload(**base, type="text", content=selected)

    return CapturePayload(**base)


class DragCapture:
    """Capture-script side of a drag: classify, attach, relay."""

    def __init__(self, bus: Optional[MessageBus]) -> None:
        self.bus = bus

    async def on_drag_start(self, gesture: DragGesture) -> CapturePayload:
        payload = classify(gesture.page, gesture.target, gesture.selection)
        if not payload.is_actionable:
            return payload

        gesture.data_transfer.set_data(CUSTOM_MIME, payload.to_json())
        await self._relay(payload)
        logger.debug("Drag detected: %s from %s", payload.type, payload.source_url)
        return payload

    async def _relay(self, payload: CapturePayload) -> None:
        """Mirror *payload* into the background cache, ignoring a dead context."""
        if self.bus is None:
            logger.debug("Extension context invalid, skipping relay")
            return
        try:
            await self.bus.request(BACKGROUND, SetDragPayload(payload=payload))
        except DeliveryError:
            logger.debug("Background context unavailable; relay skipped")
