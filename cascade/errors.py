"""Exception hierarchy shared by the storage, relay and export layers."""

from __future__ import annotations


class CascadeError(Exception):
    """Base class for every error raised by the Cascade core."""


class NotFoundError(CascadeError, ValueError):
    """A requested record does not exist."""


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id!r}")
        self.project_id = project_id


class NodeNotFoundError(NotFoundError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id!r}")
        self.node_id = node_id


class PayloadError(CascadeError):
    """A capture payload could not be parsed or validated."""


class ImageFetchError(CascadeError):
    """Downloading or encoding an image failed.

    ``status_code`` is set when the server answered with a non-success
    status; it is ``None`` for transport and encoding failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeliveryError(CascadeError):
    """The receiving execution context no longer exists."""


class ExportError(CascadeError):
    """Serialising the canvas document or building the archive failed."""
