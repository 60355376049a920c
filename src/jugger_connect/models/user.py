# src/jugger_connect/models/user.py
"""SQLAlchemy model for user accounts and their online status."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jugger_connect.db.session import Base
from jugger_connect.db.time import utcnow


class User(Base):
    """Account owned by the surrounding social network.

    Registration and credentials live elsewhere; this service reads the
    profile fields used in event payloads and owns ``is_online``/``last_seen``.
    """

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    avatar: Mapped[str] = mapped_column(Text, nullable=False, default="")

    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def mark_presence(self, online: bool) -> None:
        """Record the online flag together with a fresh ``last_seen``."""
        self.is_online = online
        self.last_seen = utcnow()
