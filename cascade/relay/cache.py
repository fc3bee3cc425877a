"""Single-slot, single-use, time-limited store for the last drag payload.

``set`` keeps only the newest payload and schedules its expiry after
``ttl`` seconds.  ``take`` hands the payload out at most once.  Each ``set``
gets its own token and an expiry timer only clears the slot if the token
still matches, so an old timer never wipes a newer payload (even when the
same payload object is set twice).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from cascade.capture.payload import CapturePayload
from cascade.config import settings

logger = logging.getLogger(__name__)


class RelayCache:
    def __init__(self, ttl: Optional[float] = None) -> None:
        self.ttl = settings.relay_ttl if ttl is None else ttl
        self._payload: Optional[CapturePayload] = None
        self._token: Optional[object] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    def set(self, payload: CapturePayload) -> None:
        """Store *payload*, replacing anything not yet taken.

        Must be called from a running event loop, which owns the timer.
        """
        if self._timer is not None:
            self._timer.cancel()
        token = object()
        self._payload = payload
        self._token = token
        self._timer = asyncio.get_running_loop().call_later(self.ttl, self._expire, token)

    def take(self) -> Optional[CapturePayload]:
        """Return the stored payload (or ``None``) and clear the slot."""
        payload = self._payload
        self._clear()
        return payload

    # The relay protocol calls this operation "get".
    get = take

    def peek(self) -> Optional[CapturePayload]:
        return self._payload

    def _expire(self, token: object) -> None:
        if self._token is token:
            logger.debug("Relay payload expired unclaimed")
            self._clear()

    def _clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._payload = None
        self._token = None
        self._timer = None
