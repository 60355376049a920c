"""Persistence and read-state operations for direct messages."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import and_, desc, func, or_
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query, Session

from jugger_connect.core.errors import (
    NotFoundError,
    TransientStorageError,
    UnauthorizedError,
    ValidationError,
)
from jugger_connect.core.settings import settings
from jugger_connect.db.time import utcnow
from jugger_connect.models import Message, MessageType

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = frozenset(item.value for item in MessageType)
_LIKE_ESCAPE = "\\"


@dataclass
class MessagePage:
    """Newest-first slice of a conversation."""

    messages: list[Message]
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return len(self.messages) == self.limit


@dataclass
class SearchPage:
    """Newest-first search hits with totals for pagination."""

    messages: list[Message]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def _validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    if limit < 1:
        raise ValidationError("Limit must be 1 or greater")


def _escape_like(text: str) -> str:
    return (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )


class MessageStore:
    """Repository for :class:`Message` rows bound to one session.

    Every listing excludes soft-deleted rows and orders by ``created_at``
    descending, breaking ties by ``id`` descending so rows inserted later
    come first.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _storage_guard(self) -> Iterator[None]:
        try:
            yield
        except OperationalError as exc:
            self.db.rollback()
            logger.error("Message storage unavailable: %s", exc, exc_info=True)
            raise TransientStorageError("Message storage is temporarily unavailable") from exc

    def _visible(self) -> Query[Message]:
        return self.db.query(Message).filter(Message.is_deleted.is_(False))

    @staticmethod
    def _newest_first(query: Query[Message]) -> Query[Message]:
        return query.order_by(desc(Message.created_at), desc(Message.id))

    def create(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        message_type: str = MessageType.TEXT.value,
        file_url: str = "",
    ) -> Message:
        """Persist a new message.

        The receiver's existence is the caller's responsibility.

        Raises:
            ValidationError: For a missing participant, self-addressed message,
                empty or oversized content, or an unknown message type.
        """
        if not sender_id or not receiver_id:
            raise ValidationError("Sender and receiver are required")
        if sender_id == receiver_id:
            raise ValidationError("Cannot send a message to yourself")
        if content is None or not content.strip():
            raise ValidationError("Message content is required")
        if len(content) > settings.message_max_length:
            raise ValidationError(
                f"Message cannot be more than {settings.message_max_length} characters"
            )
        message_type = message_type or MessageType.TEXT.value
        if message_type not in _MESSAGE_TYPES:
            raise ValidationError(f"Unsupported message type: {message_type}")

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=message_type,
            file_url=file_url or "",
        )
        with self._storage_guard():
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
        logger.debug("Stored message %s from %s to %s", message.id, sender_id, receiver_id)
        return message

    def get(self, message_id: int) -> Message:
        """Return a message by id, soft-deleted rows included."""
        with self._storage_guard():
            message = self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def list_conversation(
        self,
        user_a: int,
        user_b: int,
        page: int = 1,
        limit: int | None = None,
    ) -> MessagePage:
        """Return one page of the messages exchanged between two users."""
        limit = limit or settings.conversation_page_size
        _validate_paging(page, limit)
        query = self._visible().filter(
            or_(
                and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                and_(Message.sender_id == user_b, Message.receiver_id == user_a),
            )
        )
        with self._storage_guard():
            messages = (
                self._newest_first(query)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        return MessagePage(messages=messages, page=page, limit=limit)

    def list_all_for_user(self, user_id: int) -> list[Message]:
        """Return every visible message the user sent or received."""
        query = self._visible().filter(
            or_(Message.sender_id == user_id, Message.receiver_id == user_id)
        )
        with self._storage_guard():
            return self._newest_first(query).all()

    def mark_read(self, sender_id: int, receiver_id: int) -> int:
        """Mark everything ``sender_id`` sent to ``receiver_id`` as read.

        Returns:
            Number of rows flipped; zero when nothing was unread.
        """
        with self._storage_guard():
            updated = (
                self.db.query(Message)
                .filter(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.is_read.is_(False),
                )
                .update({Message.is_read: True, Message.read_at: utcnow()})
            )
            self.db.commit()
        return int(updated or 0)

    def unread_count(self, user_id: int) -> int:
        """Count visible unread messages addressed to ``user_id``."""
        with self._storage_guard():
            count = (
                self.db.query(func.count(Message.id))
                .filter(
                    Message.receiver_id == user_id,
                    Message.is_read.is_(False),
                    Message.is_deleted.is_(False),
                )
                .scalar()
            )
        return int(count or 0)

    def soft_delete(self, message_id: int, requesting_user_id: int) -> Message:
        """Hide a message on behalf of its author.

        Raises:
            NotFoundError: If the message does not exist.
            UnauthorizedError: If the requester did not send the message.
        """
        message = self.get(message_id)
        if message.sender_id != requesting_user_id:
            raise UnauthorizedError("Not authorized to delete this message")
        if message.is_deleted:
            return message

        message.is_deleted = True
        message.deleted_at = utcnow()
        with self._storage_guard():
            self.db.commit()
            self.db.refresh(message)
        return message

    def search(
        self,
        user_id: int,
        query_text: str,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchPage:
        """Case-insensitive substring search over the user's visible messages."""
        if query_text is None or not query_text.strip():
            raise ValidationError("Search query is required")
        limit = limit or settings.search_page_size
        _validate_paging(page, limit)

        pattern = f"%{_escape_like(query_text)}%"
        query = self._visible().filter(
            or_(Message.sender_id == user_id, Message.receiver_id == user_id),
            Message.content.ilike(pattern, escape=_LIKE_ESCAPE),
        )
        with self._storage_guard():
            total = query.with_entities(func.count(Message.id)).scalar() or 0
            messages = (
                self._newest_first(query)
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        return SearchPage(messages=messages, page=page, limit=limit, total=int(total))
