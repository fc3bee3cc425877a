"""In-memory model of a drag/clipboard data transfer.

Mirrors what a browser exposes on drop and paste events: string values
keyed by MIME type plus a list of files.  Missing types read as an empty
string, as in the DOM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass
class DroppedFile:
    data: bytes = field(repr=False)
    mime_type: str = ""
    name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")


class DataTransfer:
    def __init__(
        self,
        data: Optional[dict[str, str]] = None,
        files: Optional[Iterable[DroppedFile]] = None,
    ) -> None:
        self._data: dict[str, str] = dict(data or {})
        self.files: list[DroppedFile] = list(files or [])

    @property
    def types(self) -> list[str]:
        return list(self._data)

    def get_data(self, mime_type: str) -> str:
        # "text" is the legacy alias for "text/plain".
        if mime_type == "text":
            mime_type = "text/plain"
        return self._data.get(mime_type.lower(), "")

    def set_data(self, mime_type: str, value: str) -> None:
        self._data[mime_type.lower()] = value

    def __repr__(self) -> str:
        return f"DataTransfer(types={self.types!r}, files={len(self.files)})"
