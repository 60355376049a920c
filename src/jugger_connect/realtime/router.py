"""Realtime event routing between live connections and the message store.

A connection moves through three states:

- connecting: the bearer credential is checked by :meth:`EventRouter.authenticate`;
  a failure means no presence entry is ever created.
- connected: :meth:`EventRouter.connect` registers presence, marks the user
  online, broadcasts ``user_online`` and joins the private channel. Inbound
  frames go through :meth:`EventRouter.dispatch`.
- disconnected: :meth:`EventRouter.disconnect` cleans up, and only marks the
  user offline if no connection of that user is registered once the offline
  write completes. Presence writes for one user are serialized.

Database work runs in a worker thread with its own session per operation, so
the event loop stays free while a write is outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from contextlib import AbstractContextManager
from typing import Any, TypeVar

from pydantic import ValidationError as PayloadError
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jugger_connect.core.errors import AuthenticationError, ChatError
from jugger_connect.core.security import decode_access_token
from jugger_connect.core.settings import settings
from jugger_connect.db.session import SessionLocal
from jugger_connect.db.time import utcnow
from jugger_connect.schemas.message import serialize_message
from jugger_connect.schemas.realtime import (
    EventEnvelope,
    MarkReadPayload,
    PresenceEvent,
    SendMessagePayload,
    StatusPayload,
    TypingPayload,
)
from jugger_connect.schemas.user import UserSummary
from jugger_connect.services.message_store import MessageStore
from jugger_connect.services.user_service import get_user, require_user, set_presence

from .channels import ChannelHub, private_channel
from .connection import Connection
from .presence import PresenceRegistry, RedisPresenceDirectory

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionFactory = Callable[[], AbstractContextManager[Session]]
Handler = Callable[[Connection, dict[str, Any]], Awaitable[None]]

SEND_FAILED_MESSAGE = "Failed to send message"


def _load_profile(db: Session, user_id: int) -> UserSummary | None:
    user = get_user(db, user_id)
    return UserSummary.model_validate(user) if user is not None else None


def _persist_message(db: Session, sender_id: int, payload: SendMessagePayload) -> dict[str, Any]:
    require_user(db, payload.receiver_id, "Receiver")
    message = MessageStore(db).create(
        sender_id=sender_id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        message_type=payload.message_type,
        file_url=payload.file_url,
    )
    return serialize_message(message)


def _mark_read(db: Session, sender_id: int, receiver_id: int) -> int:
    return MessageStore(db).mark_read(sender_id, receiver_id)


def _store_presence(db: Session, user_id: int, online: bool) -> dict[str, Any]:
    user = set_presence(db, user_id, online)
    return PresenceEvent(
        user_id=user.id, is_online=user.is_online, last_seen=user.last_seen
    ).to_wire()


class EventRouter:
    """Binds connections to users and relays events between them."""

    def __init__(
        self,
        registry: PresenceRegistry | None = None,
        hub: ChannelHub | None = None,
        session_factory: SessionFactory = SessionLocal,
        directory: RedisPresenceDirectory | None = None,
    ) -> None:
        self.registry = registry or PresenceRegistry()
        self.hub = hub or ChannelHub()
        self.directory = directory
        self._session_factory = session_factory
        self._presence_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._handlers: dict[str, Handler] = {
            "send_message": self.on_send_message,
            "typing_start": self.on_typing_start,
            "typing_stop": self.on_typing_stop,
            "mark_read": self.on_mark_read,
            "update_status": self.on_update_status,
        }

    async def _run_db(self, fn: Callable[..., T], *args: Any) -> T:
        def call() -> T:
            with self._session_factory() as db:
                return fn(db, *args)

        return await asyncio.to_thread(call)

    # --- lifecycle ------------------------------------------------------------------
    async def authenticate(self, token: str | None) -> UserSummary:
        """Verify a handshake credential and return the caller's profile.

        Raises:
            AuthenticationError: Missing or invalid token, or unknown user.
        """
        user_id = decode_access_token(token)
        profile = await self._run_db(_load_profile, user_id)
        if profile is None:
            raise AuthenticationError("User not found")
        return profile

    async def connect(self, connection: Connection, profile: UserSummary) -> None:
        """Register a freshly authenticated connection and announce the user."""
        previous = self.registry.register(profile.id, connection, profile)
        if previous is not None and previous.connection is not connection:
            logger.info(
                "User %s reconnected; %r supersedes %r",
                profile.id, connection, previous.connection,
            )
        self.hub.add(connection)
        self.hub.join(private_channel(profile.id), connection)
        logger.info("User connected: %s (%s)", profile.name, profile.id)

        async with self._presence_locks[profile.id]:
            await self._publish_presence(profile.id, connection)
            event = await self._save_presence(profile.id, online=True)
            self.hub.broadcast("user_online", event)

    async def disconnect(self, connection: Connection) -> bool:
        """Tear down a closed connection.

        Returns:
            True if the user went offline, False if a newer connection for the
            same user had already replaced this one, before or while the
            offline status was being saved.
        """
        user_id = connection.user_id
        self.hub.discard(connection)
        connection.close()
        if not self.registry.unregister(user_id, connection):
            logger.debug("Ignoring disconnect of superseded %r", connection)
            return False

        async with self._presence_locks[user_id]:
            if self.registry.lookup(user_id) is not None:
                logger.debug("User %s reconnected before going offline", user_id)
                return False

            logger.info("User disconnected: %s", user_id)
            await self._withdraw_presence(user_id, connection)
            event = await self._save_presence(user_id, online=False)

            if self.registry.lookup(user_id) is not None:
                # A reconnect registered while the offline write was in flight.
                logger.info("User %s reconnected while going offline", user_id)
                await self._save_presence(user_id, online=True)
                return False

            self.hub.broadcast("user_offline", event)
            return True

    async def dispatch(self, connection: Connection, frame: Any) -> None:
        """Route one inbound frame to its handler."""
        try:
            envelope = EventEnvelope.model_validate(frame)
        except PayloadError:
            connection.emit("error", {"message": "Malformed event frame"})
            return

        handler = self._handlers.get(envelope.event)
        if handler is None:
            connection.emit(
                "error",
                {"event": envelope.event, "message": f"Unknown event: {envelope.event}"},
            )
            return
        await handler(connection, envelope.data)

    def emit_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> int:
        """Deliver ``event`` to every connection in the user's private channel."""
        return self.hub.emit(private_channel(user_id), event, data)

    async def is_reachable(self, user_id: int) -> bool:
        """True if the user holds a live connection here or, per the directory, on any node."""
        if self.registry.lookup(user_id) is not None:
            return True
        if self.directory is None:
            return False
        try:
            return await self.directory.is_online(user_id)
        except RedisError as exc:
            logger.warning("Presence directory lookup failed for %s: %s", user_id, exc)
            return False

    async def keep_presence(self, connection: Connection) -> None:
        """Refresh the directory entry of ``connection`` until it closes or is superseded."""
        if self.directory is None:
            return
        while not connection.closed:
            await asyncio.sleep(self.directory.refresh_interval)
            if connection.closed or self.registry.lookup(connection.user_id) is not connection:
                return
            try:
                owned = await self.directory.refresh(connection.user_id, connection)
            except RedisError as exc:
                logger.warning("Presence refresh failed for %r: %s", connection, exc)
                continue
            if not owned:
                logger.debug("%r no longer owns the directory entry", connection)
                return

    # --- inbound events -------------------------------------------------------------
    async def on_send_message(self, connection: Connection, data: dict[str, Any]) -> None:
        try:
            payload = SendMessagePayload.model_validate(data)
        except PayloadError:
            connection.emit("message_error", {"message": "Receiver and content are required"})
            return

        try:
            message = await self._run_db(_persist_message, connection.user_id, payload)
        except ChatError as exc:
            logger.warning("Send message from %s failed: %s", connection.user_id, exc.message)
            connection.emit("message_error", {"message": exc.message})
            return
        except SQLAlchemyError:
            logger.exception("Send message from %s failed", connection.user_id)
            connection.emit("message_error", {"message": SEND_FAILED_MESSAGE})
            return

        receiver = self.registry.lookup(payload.receiver_id)
        if receiver is not None:
            receiver.emit("receive_message", message)
        else:
            logger.debug("Receiver %s offline; message %s kept for later", payload.receiver_id, message["id"])
        connection.emit("message_sent", message)
        self.hub.emit(
            private_channel(payload.receiver_id),
            "typing_stop",
            {"userId": connection.user_id},
            skip=connection,
        )

    async def on_typing_start(self, connection: Connection, data: dict[str, Any]) -> None:
        self._forward_typing(connection, "typing_start", data)

    async def on_typing_stop(self, connection: Connection, data: dict[str, Any]) -> None:
        self._forward_typing(connection, "typing_stop", data)

    def _forward_typing(self, connection: Connection, event: str, data: dict[str, Any]) -> None:
        try:
            payload = TypingPayload.model_validate(data)
        except PayloadError:
            connection.emit("error", {"event": event, "message": "receiverId is required"})
            return
        self.hub.emit(
            private_channel(payload.receiver_id),
            event,
            {"userId": connection.user_id},
            skip=connection,
        )

    async def on_mark_read(self, connection: Connection, data: dict[str, Any]) -> None:
        try:
            payload = MarkReadPayload.model_validate(data)
        except PayloadError:
            connection.emit("error", {"event": "mark_read", "message": "senderId is required"})
            return

        try:
            updated = await self._run_db(_mark_read, payload.sender_id, connection.user_id)
        except (ChatError, SQLAlchemyError) as exc:
            logger.error("Mark read by %s failed: %s", connection.user_id, exc, exc_info=True)
            connection.emit("error", {"event": "mark_read", "message": "Failed to mark messages as read"})
            return

        logger.debug("User %s read %d messages from %s", connection.user_id, updated, payload.sender_id)
        sender = self.registry.lookup(payload.sender_id)
        if sender is not None:
            sender.emit("messages_read", {"readerId": connection.user_id})

    async def on_update_status(self, connection: Connection, data: dict[str, Any]) -> None:
        try:
            payload = StatusPayload.model_validate(data)
        except PayloadError:
            connection.emit("error", {"event": "update_status", "message": "status is required"})
            return

        online = payload.status == "online"
        async with self._presence_locks[connection.user_id]:
            try:
                event = await self._run_db(_store_presence, connection.user_id, online)
            except (ChatError, SQLAlchemyError) as exc:
                logger.error("Update status by %s failed: %s", connection.user_id, exc, exc_info=True)
                connection.emit(
                    "error", {"event": "update_status", "message": "Failed to update status"}
                )
                return
            self.hub.broadcast("user_status_update", event)

    # --- helpers --------------------------------------------------------------------
    async def _save_presence(self, user_id: int, online: bool) -> dict[str, Any]:
        try:
            return await self._run_db(_store_presence, user_id, online)
        except (ChatError, SQLAlchemyError) as exc:
            logger.warning("Could not persist presence for %s: %s", user_id, exc)
            return PresenceEvent(user_id=user_id, is_online=online, last_seen=utcnow()).to_wire()

    async def _publish_presence(self, user_id: int, connection: Connection) -> None:
        if self.directory is None:
            return
        try:
            await self.directory.publish(user_id, connection)
        except RedisError as exc:
            logger.warning("Presence directory publish failed for %s: %s", user_id, exc)

    async def _withdraw_presence(self, user_id: int, connection: Connection) -> None:
        if self.directory is None:
            return
        try:
            await self.directory.withdraw(user_id, connection)
        except RedisError as exc:
            logger.warning("Presence directory withdraw failed for %s: %s", user_id, exc)


class _EventRouterSingleton:
    """Singleton wrapper for the process-wide EventRouter."""

    _instance: EventRouter | None = None

    @classmethod
    def get_instance(cls) -> EventRouter:
        if cls._instance is None:
            directory = (
                RedisPresenceDirectory.from_settings()
                if settings.presence_redis_enabled
                else None
            )
            cls._instance = EventRouter(directory=directory)
        return cls._instance


def get_event_router() -> EventRouter:
    """Return the process-wide event router."""
    return _EventRouterSingleton.get_instance()
