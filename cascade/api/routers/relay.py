"""Relay endpoints: the capture script's line to the background context.

Routes
------
PUT  /relay/drag-payload    Body: capture payload     → setDragPayload
GET  /relay/drag-payload    Take (and clear) the cached payload
POST /relay/messages        Body: {"action": "...", ...} → background reply
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError

from cascade.capture.payload import CapturePayload
from cascade.errors import DeliveryError
from cascade.relay.bus import BACKGROUND
from cascade.relay.messages import GetDragPayload, SetDragPayload, parse_message

router = APIRouter()


async def _send(request: Request, message: BaseModel) -> dict[str, Any]:
    try:
        reply = await request.app.state.bus.request(BACKGROUND, message)
    except DeliveryError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return reply.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.put("/drag-payload")
async def set_drag_payload_endpoint(body: CapturePayload, request: Request) -> dict[str, Any]:
    return await _send(request, SetDragPayload(payload=body))


@router.get("/drag-payload")
async def get_drag_payload_endpoint(request: Request) -> dict[str, Any]:
    reply = await _send(request, GetDragPayload())
    # The payload key is always present; null means nothing was cached.
    reply.setdefault("payload", None)
    return reply


@router.post("/messages")
async def relay_message_endpoint(body: dict[str, Any], request: Request) -> dict[str, Any]:
    try:
        message = parse_message(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422, detail=exc.errors(include_url=False, include_context=False)
        ) from exc
    return await _send(request, message)
