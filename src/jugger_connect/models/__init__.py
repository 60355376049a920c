# src/jugger_connect/models/__init__.py
"""SQLAlchemy models for the messaging service."""

from .message import CONVERSATION_ID_SEPARATOR, Message, MessageType, conversation_id_of
from .user import User

__all__ = [
    "CONVERSATION_ID_SEPARATOR", "conversation_id_of",
    "Message", "MessageType",
    "User",
]
