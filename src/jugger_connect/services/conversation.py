"""Conversation identity resolution and per-counterparty aggregation.

Conversations are never stored. A conversation between two users is named by
the sorted pair of their ids (``"<low>-<high>"``). Older clients still address
a conversation by the id of any message in it, so every consumer goes
through :func:`resolve_counterparty`, which accepts both shapes.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from jugger_connect.core.errors import NotFoundError, UnauthorizedError, ValidationError
from jugger_connect.models import CONVERSATION_ID_SEPARATOR, Message, conversation_id_of

from .message_store import MessageStore

__all__ = [
    "ConversationSummary",
    "conversation_id_of",
    "list_conversations",
    "resolve_counterparty",
    "split_conversation_id",
]


@dataclass
class ConversationSummary:
    """Latest activity with one counterparty, as seen by one user."""

    counterparty_id: int
    conversation_id: str
    last_message: Message
    unread_count: int = 0


def split_conversation_id(identifier: str) -> tuple[str, str] | None:
    """Return both tokens of a pair key, or None for any other shape."""
    tokens = identifier.split(CONVERSATION_ID_SEPARATOR)
    if len(tokens) != 2:
        return None
    return tokens[0], tokens[1]


def _parse_user_id(token: str) -> int:
    try:
        return int(token)
    except ValueError as exc:
        raise ValidationError(f"Invalid participant id in conversation: {token!r}") from exc


def resolve_counterparty(db: Session, identifier: str, requesting_user_id: int) -> int:
    """Return the other participant of the conversation named by ``identifier``.

    Args:
        db: Session used for the legacy message lookup.
        identifier: Pair key or legacy message id.
        requesting_user_id: The user asking; must be a participant.

    Raises:
        ValidationError: Pair key that does not contain the requester, or
            whose tokens are not user ids.
        NotFoundError: Legacy id that matches no message.
        UnauthorizedError: Legacy message the requester did not take part in.
    """
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValidationError("Conversation ID is required")

    pair = split_conversation_id(identifier)
    if pair is not None:
        first, second = (_parse_user_id(token) for token in pair)
        if first == requesting_user_id:
            return second
        if second == requesting_user_id:
            return first
        raise ValidationError("Requesting user is not a participant in this conversation")

    try:
        message_id = int(identifier)
    except ValueError as exc:
        raise NotFoundError("Conversation not found") from exc

    try:
        message = MessageStore(db).get(message_id)
    except NotFoundError as exc:
        raise NotFoundError("Conversation not found") from exc

    if requesting_user_id not in (message.sender_id, message.receiver_id):
        raise UnauthorizedError("Not a participant in this conversation")
    return message.counterparty_of(requesting_user_id)


def list_conversations(db: Session, user_id: int) -> list[ConversationSummary]:
    """Group the user's visible messages into one summary per counterparty.

    Messages arrive newest first, so the first message seen for a counterparty
    is its ``last_message`` and the resulting list is ordered by recency.
    """
    summaries: dict[int, ConversationSummary] = {}
    for message in MessageStore(db).list_all_for_user(user_id):
        counterparty_id = message.counterparty_of(user_id)
        summary = summaries.get(counterparty_id)
        if summary is None:
            summary = ConversationSummary(
                counterparty_id=counterparty_id,
                conversation_id=conversation_id_of(user_id, counterparty_id),
                last_message=message,
            )
            summaries[counterparty_id] = summary
        if not message.is_read and message.receiver_id == user_id:
            summary.unread_count += 1
    return list(summaries.values())
