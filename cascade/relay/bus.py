"""In-process message passing between execution contexts.

Each context (capturing page, background, panel) runs on the same asyncio
loop here but only talks to the others through a :class:`MessageBus`:

* ``request`` sends a message to one named context and awaits its reply.
  A context that is not registered (torn down, never started) raises
  :class:`~cascade.errors.DeliveryError`; callers are expected to swallow it.
* ``post`` broadcasts a message to every subscriber without waiting.  A
  subscriber that fails is logged and skipped; the sender never sees it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from cascade.errors import DeliveryError

logger = logging.getLogger(__name__)

BACKGROUND = "background"

Handler = Callable[[BaseModel], Awaitable[Any]]
Listener = Callable[[BaseModel], Awaitable[None]]


class MessageBus:
    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._listeners: list[Listener] = []
        self._inflight: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Request / reply
    # ------------------------------------------------------------------
    def register(self, context: str, handler: Handler) -> None:
        self._handlers[context] = handler

    def unregister(self, context: str) -> None:
        self._handlers.pop(context, None)

    async def request(self, context: str, message: BaseModel) -> Any:
        handler = self._handlers.get(context)
        if handler is None:
            raise DeliveryError(
                f"Could not establish connection. Receiving end {context!r} does not exist."
            )
        return await handler(message)

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add a broadcast listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def broadcast(self, message: BaseModel) -> None:
        """Deliver *message* to every current listener, in turn."""
        for listener in list(self._listeners):
            try:
                await listener(message)
            except DeliveryError:
                logger.debug("Listener gone while delivering %s", type(message).__name__)
            except Exception:  # noqa: BLE001 - a failing receiver must not crash the sender
                logger.warning(
                    "Listener failed on %s", type(message).__name__, exc_info=True
                )

    def post(self, message: BaseModel) -> asyncio.Task[None]:
        """Schedule :meth:`broadcast` without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.broadcast(message))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def drain(self) -> None:
        """Wait until every posted broadcast has been delivered."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight))
