"""Lookup and online-status helpers for user accounts."""
from __future__ import annotations

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from jugger_connect.core.errors import NotFoundError, TransientStorageError
from jugger_connect.models.user import User

__all__ = [
    "get_user",
    "require_user",
    "set_presence",
]


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key.

    Raises:
        TransientStorageError: If the database cannot be reached.
    """
    try:
        return db.get(User, user_id)
    except OperationalError as exc:
        db.rollback()
        raise TransientStorageError("User lookup is temporarily unavailable") from exc


def require_user(db: Session, user_id: int, label: str = "User") -> User:
    """Return the user or raise NotFoundError mentioning ``label``."""
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"{label} not found")
    return user


def set_presence(db: Session, user_id: int, online: bool) -> User:
    """Persist ``is_online`` and refresh ``last_seen`` for a user."""
    user = require_user(db, user_id)
    user.mark_presence(online)
    try:
        db.commit()
    except OperationalError as exc:
        db.rollback()
        raise TransientStorageError("User status could not be saved") from exc
    db.refresh(user)
    return user
