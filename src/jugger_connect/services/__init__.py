# src/jugger_connect/services/__init__.py
"""Business logic services for the messaging core."""

from .conversation import (
    ConversationSummary,
    conversation_id_of,
    list_conversations,
    resolve_counterparty,
)
from .message_store import MessagePage, MessageStore, SearchPage

__all__ = [
    "ConversationSummary",
    "MessagePage",
    "MessageStore",
    "SearchPage",
    "conversation_id_of",
    "list_conversations",
    "resolve_counterparty",
]
