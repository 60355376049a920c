"""A single live client connection with a queued outbound side."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

_CLOSE = None


class Connection:
    """Authenticated websocket bound to one user.

    Producers never write to the socket directly. :meth:`emit` enqueues a
    frame and :meth:`pump` is the only coroutine that sends, so a slow client
    never blocks the handler that produced the event.
    """

    def __init__(
        self,
        websocket: WebSocket | Any,
        user_id: int,
        connection_id: str | None = None,
    ) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.user_id = user_id
        self.websocket = websocket
        self.outbox: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self.closed = False

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id})"

    def emit(self, event: str, data: dict[str, Any]) -> bool:
        """Queue ``event`` for delivery; returns False once the connection is closed."""
        if self.closed:
            return False
        self.outbox.put_nowait({"event": event, "data": data})
        return True

    async def pump(self) -> None:
        """Drain the outbox to the socket until closed."""
        while True:
            frame = await self.outbox.get()
            if frame is _CLOSE:
                return
            try:
                await self.websocket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("Dropping outbound frames for %r: %s", self, exc)
                self.closed = True
                return

    def close(self) -> None:
        """Stop accepting frames and let :meth:`pump` finish."""
        if self.closed:
            return
        self.closed = True
        self.outbox.put_nowait(_CLOSE)
