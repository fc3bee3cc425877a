"""Drop and paste events as seen by the panel, plus the capture kinds the
source resolvers turn them into."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Union

from cascade.capture.transfer import DataTransfer, DroppedFile
from cascade.db.models import Node

_EDITABLE_TAGS = {"INPUT", "TEXTAREA"}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass
class EventTarget:
    tag: str = "DIV"
    content_editable: bool = False

    @property
    def is_editable(self) -> bool:
        """Text fields keep native paste behaviour."""
        return self.tag.upper() in _EDITABLE_TAGS or self.content_editable


@dataclass
class DropEvent:
    data_transfer: DataTransfer = field(default_factory=DataTransfer)


@dataclass
class PasteEvent:
    clipboard: DataTransfer = field(default_factory=DataTransfer)
    target: EventTarget = field(default_factory=EventTarget)


# ---------------------------------------------------------------------------
# Captures (what a source resolved the event to)
# ---------------------------------------------------------------------------

@dataclass
class TextCapture:
    text: str
    source_url: Optional[str] = None
    source_icon: Optional[str] = None


@dataclass
class LinkCapture:
    url: str
    title: Optional[str] = None
    source_icon: Optional[str] = None
    source_url: Optional[str] = None


@dataclass
class ImageFilesCapture:
    files: list[DroppedFile]


@dataclass
class RemoteImageCapture:
    url: str
    source_url: Optional[str] = None


@dataclass
class Rejected:
    """A source matched but its content is unusable; stop looking further."""

    reason: str


Capture = Union[TextCapture, LinkCapture, ImageFilesCapture, RemoteImageCapture, Rejected]


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

@dataclass
class IngestResult:
    """What one drop/paste did.

    ``status`` is one of:

    * ``created``  — nodes were written (``nodes``)
    * ``pending``  — an image download was started (``task_id``); the node
      appears later, when the download completes
    * ``ignored``  — nothing usable in the event
    * ``skipped``  — paste into an editable field, left to the browser
    * ``failed``   — the image download was refused (``error``)
    """

    status: str
    source: Optional[str] = None
    nodes: list[Node] = field(default_factory=list)
    task_id: Optional[str] = None
    error: Optional[str] = None
    # Resolves to the stored node (or None if dropped) for pending downloads.
    completion: Optional["asyncio.Future[Optional[Node]]"] = field(
        default=None, repr=False, compare=False
    )

    @property
    def node(self) -> Optional[Node]:
        return self.nodes[0] if self.nodes else None

    @property
    def ok(self) -> bool:
        return self.status in ("created", "pending")
