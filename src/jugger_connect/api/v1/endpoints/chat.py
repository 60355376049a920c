# src/jugger_connect/api/v1/endpoints/chat.py
"""Direct message and conversation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from jugger_connect.core.errors import ChatError, ValidationError
from jugger_connect.core.settings import settings
from jugger_connect.models import Message, User
from jugger_connect.schemas.message import (
    ConversationListResponse,
    ConversationPageResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    CreateConversationRequest,
    MessageResponse,
    SearchResponse,
    SendMessageRequest,
    StatusResponse,
    UnreadCountResponse,
)
from jugger_connect.schemas.user import UserSummary
from jugger_connect.services.conversation import (
    conversation_id_of,
    list_conversations,
    resolve_counterparty,
)
from jugger_connect.services.message_store import MessageStore
from jugger_connect.services.user_service import require_user

from ..dependencies import CurrentUserDep, EventRouterDep, SessionDep, http_error

router = APIRouter(prefix="/chat", tags=["chat"])


def _counterparty_profile(message: Message, counterparty_id: int) -> User:
    return message.sender if message.sender_id == counterparty_id else message.receiver


@router.post(
    "/conversations",
    status_code=status.HTTP_201_CREATED,
    response_model=ConversationResponse,
)
async def create_conversation(
    body: CreateConversationRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ConversationResponse:
    """Open (or re-open) a conversation with another user.

    Nothing is stored; the returned id is the participant-pair key.
    """
    try:
        if body.participant_id == current_user.id:
            raise ValidationError("Cannot start a conversation with yourself")
        participant = require_user(db, body.participant_id, "Participant")
    except ChatError as exc:
        raise http_error(exc) from exc

    return ConversationResponse(
        id=conversation_id_of(current_user.id, participant.id),
        participants=[
            UserSummary.model_validate(current_user),
            UserSummary.model_validate(participant),
        ],
    )


@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ConversationListResponse:
    """List the caller's conversations, most recent activity first."""
    try:
        summaries = list_conversations(db, current_user.id)
    except ChatError as exc:
        raise http_error(exc) from exc

    me = UserSummary.model_validate(current_user)
    conversations = [
        ConversationSummaryResponse(
            id=summary.counterparty_id,
            conversation_id=summary.conversation_id,
            participants=[
                me,
                UserSummary.model_validate(
                    _counterparty_profile(summary.last_message, summary.counterparty_id)
                ),
            ],
            last_message=MessageResponse.model_validate(summary.last_message),
            unread_count=summary.unread_count,
        )
        for summary in summaries
    ]
    return ConversationListResponse(conversations=conversations)


@router.post(
    "/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
)
async def send_message(
    body: SendMessageRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    event_router: EventRouterDep,
) -> MessageResponse:
    """Send a message into a conversation addressed by pair key or legacy id."""
    try:
        receiver_id = resolve_counterparty(db, body.conversation_id, current_user.id)
        require_user(db, receiver_id, "Receiver")
        message = MessageStore(db).create(
            sender_id=current_user.id,
            receiver_id=receiver_id,
            content=body.content,
            message_type=body.message_type,
            file_url=body.file_url,
        )
    except ChatError as exc:
        raise http_error(exc) from exc

    response = MessageResponse.model_validate(message)
    event_router.emit_to_user(receiver_id, "receive_message", response.to_wire())
    return response


@router.get("/conversation/{conversation_id}", response_model=ConversationPageResponse)
async def get_conversation(
    conversation_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    event_router: EventRouterDep,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.conversation_page_size, ge=1, le=100),
) -> ConversationPageResponse:
    """Return one page of history, oldest first, and mark it read."""
    store = MessageStore(db)
    try:
        other_user_id = resolve_counterparty(db, conversation_id, current_user.id)
        require_user(db, other_user_id, "User")
        history = store.list_conversation(current_user.id, other_user_id, page=page, limit=limit)
        messages = [MessageResponse.model_validate(m) for m in reversed(history.messages)]
        updated = store.mark_read(other_user_id, current_user.id)
    except ChatError as exc:
        raise http_error(exc) from exc

    if updated:
        event_router.emit_to_user(other_user_id, "messages_read", {"readerId": current_user.id})
    return ConversationPageResponse(
        messages=messages,
        current_page=history.page,
        has_more=history.has_more,
    )


@router.put("/messages/read/{sender_id}", response_model=StatusResponse)
async def mark_messages_read(
    sender_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    event_router: EventRouterDep,
) -> StatusResponse:
    """Mark everything ``sender_id`` sent to the caller as read."""
    try:
        updated = MessageStore(db).mark_read(sender_id, current_user.id)
    except ChatError as exc:
        raise http_error(exc) from exc

    if updated:
        event_router.emit_to_user(sender_id, "messages_read", {"readerId": current_user.id})
    return StatusResponse(message="Messages marked as read", updated=updated)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UnreadCountResponse:
    try:
        count = MessageStore(db).unread_count(current_user.id)
    except ChatError as exc:
        raise http_error(exc) from exc
    return UnreadCountResponse(unread_count=count)


@router.delete("/messages/{message_id}", response_model=StatusResponse)
async def delete_message(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusResponse:
    """Soft-delete one of the caller's own messages."""
    try:
        MessageStore(db).soft_delete(message_id, current_user.id)
    except ChatError as exc:
        raise http_error(exc) from exc
    return StatusResponse(message="Message deleted successfully")


@router.get("/search", response_model=SearchResponse)
async def search_messages(
    current_user: CurrentUserDep,
    db: SessionDep,
    query: str | None = Query(None, description="Text to look for"),
    q: str | None = Query(None, description="Alias of query"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.search_page_size, ge=1, le=100),
) -> SearchResponse:
    """Search the caller's messages by content, case-insensitively."""
    try:
        results = MessageStore(db).search(current_user.id, query or q or "", page=page, limit=limit)
    except ChatError as exc:
        raise http_error(exc) from exc

    return SearchResponse(
        messages=[MessageResponse.model_validate(m) for m in results.messages],
        current_page=results.page,
        total_pages=results.total_pages,
        total_messages=results.total,
    )
