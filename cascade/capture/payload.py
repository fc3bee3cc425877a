"""Capture payload: what the user dragged, before it becomes a stored node.

The same JSON shape travels as the custom drag MIME value and as the body
of the relay messages, so field names on the wire are camelCase.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cascade.errors import PayloadError

# Custom MIME-like key the capture script attaches to the drag data.
CUSTOM_MIME = "application/webcanvas-payload"

PayloadType = Literal["text", "image", "link", "unknown"]


class CapturePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_url: str = Field(alias="sourceUrl")
    source_title: str = Field(default="", alias="sourceTitle")
    source_icon: Optional[str] = Field(default=None, alias="sourceIcon")
    type: PayloadType = "unknown"
    content: Optional[str] = None
    link_title: Optional[str] = Field(default=None, alias="linkTitle")

    @property
    def is_actionable(self) -> bool:
        """``True`` when the payload names something that can be stored."""
        return self.type != "unknown" and bool(self.content)

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        # Optional keys are omitted rather than sent as null.
        for key in ("sourceIcon", "linkTitle"):
            if data[key] is None:
                del data[key]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)

    @classmethod
    def parse(cls, raw: Union[str, bytes, dict[str, Any]]) -> "CapturePayload":
        """Build a payload from a JSON string or an already-decoded dict.

        Raises:
            PayloadError: If the input is not JSON or does not match the
                payload shape.
        """
        try:
            if isinstance(raw, dict):
                return cls.model_validate(raw)
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise PayloadError(f"Invalid capture payload: {exc.error_count()} error(s)") from exc
