"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.

Text nodes carry a two-stage edit history.  The flat columns
(``text``/``original_text``/``edited_text``/``has_edited``) are what gets
stored; :attr:`Node.version` exposes the same state as a tagged variant,
either :class:`Pristine` or :class:`Edited`, and the store only ever writes
columns derived from one of those two variants.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal, Optional, Union

NodeType = Literal["text", "file", "link"]
ProjectType = Literal["canvas", "markdown"]

NODE_TYPES: tuple[str, ...] = ("text", "file", "link")
PROJECT_TYPES: tuple[str, ...] = ("canvas", "markdown")


# ---------------------------------------------------------------------------
# Text version state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pristine:
    """Captured text that has never been edited."""

    text: str

    @property
    def current(self) -> str:
        return self.text


@dataclass(frozen=True)
class Edited:
    """Text edited at least once; ``original`` is frozen at the first edit."""

    original: str
    current: str


TextVersion = Union[Pristine, Edited]


def apply_edit(version: TextVersion, new_content: str) -> Optional[TextVersion]:
    """Return the version that results from editing to *new_content*.

    ``None`` means the trimmed content equals the current text, i.e. the
    edit is a no-op and nothing should be written.
    """
    trimmed = new_content.strip()
    if trimmed == version.current:
        return None
    if isinstance(version, Pristine):
        return Edited(original=version.text, current=trimmed)
    return Edited(original=version.original, current=trimmed)


def version_columns(version: TextVersion) -> dict[str, object]:
    """Flatten a version variant into its storage columns."""
    if isinstance(version, Pristine):
        return {
            "text": version.text,
            "original_text": version.text,
            "edited_text": None,
            "has_edited": 0,
        }
    return {
        "text": version.current,
        "original_text": version.original,
        "edited_text": version.current,
        "has_edited": 1,
    }


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

@dataclass
class Project:
    id: str
    name: str
    updated_at: int
    is_inbox: bool = False
    project_type: str = "canvas"
    file_handle: Optional[str] = None


@dataclass(frozen=True)
class NodeSnapshot:
    """Every field of a node except its id; used to undo a delete."""

    project_id: str
    type: str
    order: int
    created_at: int
    text: Optional[str] = None
    original_text: Optional[str] = None
    edited_text: Optional[str] = None
    has_edited: bool = False
    file_data: Optional[bytes] = field(default=None, repr=False)
    file_name: Optional[str] = None
    url: Optional[str] = None
    source_url: Optional[str] = None
    source_icon: Optional[str] = None


@dataclass
class Node:
    id: str
    project_id: str
    type: str
    order: int
    created_at: int
    text: Optional[str] = None
    original_text: Optional[str] = None
    edited_text: Optional[str] = None
    has_edited: bool = False
    file_data: Optional[bytes] = field(default=None, repr=False)
    file_name: Optional[str] = None
    url: Optional[str] = None
    source_url: Optional[str] = None
    source_icon: Optional[str] = None

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @property
    def version(self) -> TextVersion:
        """Edit-history state of a text node.

        Raises:
            ValueError: If the node is not a text node.
        """
        if self.type != "text":
            raise ValueError(f"Node {self.id!r} is a {self.type} node, not text")
        if self.has_edited:
            return Edited(
                original=self.original_text or "",
                current=self.text or "",
            )
        return Pristine(text=self.text or "")

    def snapshot(self) -> NodeSnapshot:
        data = asdict(self)
        data.pop("id")
        return NodeSnapshot(**data)
