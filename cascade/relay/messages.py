"""Messages exchanged between execution contexts.

Requests into the background context carry an ``action`` discriminator;
:func:`parse_message` turns a decoded JSON body into the matching model.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from cascade.capture.payload import CapturePayload


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SetDragPayload(_Message):
    action: Literal["setDragPayload"] = "setDragPayload"
    payload: CapturePayload


class GetDragPayload(_Message):
    action: Literal["getDragPayload"] = "getDragPayload"


class GetFavicon(_Message):
    action: Literal["getFavicon"] = "getFavicon"
    url: str


class DownloadImage(_Message):
    """Ask the background context to fetch an image for a project.

    ``task_id`` correlates the eventual :class:`ImageDownloaded` broadcast
    with the request that caused it.
    """

    action: Literal["downloadImage"] = "downloadImage"
    url: str
    project_id: str = Field(alias="projectId")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")
    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="taskId")


class ImageDownloaded(_Message):
    """Broadcast once a requested image has been fetched and encoded."""

    action: Literal["imageDownloaded"] = "imageDownloaded"
    task_id: str = Field(alias="taskId")
    project_id: str = Field(alias="projectId")
    file_name: str = Field(alias="fileName")
    base64: str = Field(repr=False)
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")


class RelayReply(_Message):
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = Field(default=None, alias="statusCode")
    payload: Optional[CapturePayload] = None
    favicon: Optional[str] = None


RelayRequest = Annotated[
    Union[SetDragPayload, GetDragPayload, GetFavicon, DownloadImage],
    Field(discriminator="action"),
]

_request_adapter: TypeAdapter[Any] = TypeAdapter(RelayRequest)


def parse_message(data: dict[str, Any]) -> BaseModel:
    """Validate a decoded request body into its message model.

    Raises:
        pydantic.ValidationError: For an unknown action or a malformed body.
    """
    return _request_adapter.validate_python(data)
