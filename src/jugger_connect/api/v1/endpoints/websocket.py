"""Websocket transport for realtime messaging events."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from jugger_connect.core.errors import AuthenticationError, ChatError
from jugger_connect.core.security import extract_bearer_token
from jugger_connect.realtime.connection import Connection

from ..dependencies import EventRouterDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    event_router: EventRouterDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate the handshake, then relay frames until the client leaves.

    The bearer credential comes from the ``Authorization`` header or, for
    browsers that cannot set headers on a websocket, the ``token`` query
    parameter.
    """
    credential = token or extract_bearer_token(websocket.headers.get("authorization"))
    try:
        profile = await event_router.authenticate(credential)
    except AuthenticationError as exc:
        logger.info("Rejected realtime handshake: %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return
    except ChatError as exc:
        logger.warning("Realtime handshake failed: %s", exc.message)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=exc.message)
        return

    await websocket.accept()
    connection = Connection(websocket, profile.id)
    pump = asyncio.create_task(connection.pump())
    keepalive: asyncio.Task[None] | None = None

    try:
        await event_router.connect(connection, profile)
        keepalive = asyncio.create_task(event_router.keep_presence(connection))
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            if raw is None:
                connection.emit("error", {"message": "Frames must be JSON text"})
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                connection.emit("error", {"message": "Frames must be JSON objects"})
                continue
            await event_router.dispatch(connection, frame)
    except WebSocketDisconnect as exc:
        logger.debug("%r closed with code %s", connection, exc.code)
    finally:
        if keepalive is not None:
            keepalive.cancel()
        await event_router.disconnect(connection)
        await pump
