# src/jugger_connect/models/message.py
"""Models describing direct messages between users."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jugger_connect.db.session import Base
from jugger_connect.db.time import utcnow

from .user import User

CONVERSATION_ID_SEPARATOR = "-"


def conversation_id_of(user_a: int | str, user_b: int | str) -> str:
    """Return the canonical key for the unordered pair ``{user_a, user_b}``.

    Both ids are compared as strings, so ``"10"`` sorts before ``"9"``.
    """
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}{CONVERSATION_ID_SEPARATOR}{high}"


class MessageType(str, Enum):
    """Kinds of payload a message can carry."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"


class Message(Base):
    """Directed message from one user to another.

    Rows are never physically removed. A sender's delete flips ``is_deleted``
    and every listing query filters those rows out.
    """

    __tablename__ = "message"
    __table_args__ = (
        Index("ix_message_pair_created", "sender_id", "receiver_id", "created_at"),
        Index("ix_message_receiver_unread", "receiver_id", "is_read"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_account.id"), nullable=False)
    receiver_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_account.id"), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MessageType.TEXT.value
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False, default="")

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    sender: Mapped[User] = relationship(User, foreign_keys=[sender_id], lazy="joined")
    receiver: Mapped[User] = relationship(User, foreign_keys=[receiver_id], lazy="joined")

    @property
    def conversation_id(self) -> str:
        """Order-independent key for the sender/receiver pair."""
        return conversation_id_of(self.sender_id, self.receiver_id)

    def counterparty_of(self, user_id: int) -> int:
        """Return whichever participant is not ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id
