"""External file-handle capability.

The core only needs three operations from a project's folder: read a text
file, write a text file, and store binary data in a subfolder.  Anything
offering those satisfies :class:`FileHandle`; :class:`LocalFolder` is the
pathlib-backed implementation, whose opaque reference is the folder path.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Protocol, Union

logger = logging.getLogger(__name__)


class FileHandle(Protocol):
    def read(self, name: str) -> str:
        ...

    def write(self, name: str, text: str) -> None:
        ...

    def save_binary(self, subfolder: str, name: str, data: bytes) -> str:
        """Store *data* and return its path relative to the folder root."""
        ...


class LocalFolder:
    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()

    @classmethod
    def from_reference(cls, reference: str) -> "LocalFolder":
        return cls(reference)

    @property
    def reference(self) -> str:
        """Opaque string stored on the project to find this folder again."""
        return str(self.root.resolve())

    def _resolve(self, relative: str) -> Path:
        root = self.root.resolve()
        path = (root / relative).resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"Path escapes folder: {relative!r}")
        return path

    def read(self, name: str) -> str:
        return self._resolve(name).read_text(encoding="utf-8")

    def write(self, name: str, text: str) -> None:
        path = self._resolve(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def save_binary(self, subfolder: str, name: str, data: bytes) -> str:
        relative = str(PurePosixPath(subfolder) / name)
        path = self._resolve(relative)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Saved %d bytes to %s", len(data), path)
        return relative
