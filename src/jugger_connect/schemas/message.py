"""Direct message and conversation Pydantic schemas."""

from datetime import datetime

from pydantic import Field

from jugger_connect.models import Message

from .common import CamelModel
from .user import UserSummary


class MessageResponse(CamelModel):
    """Message populated with sender and receiver profile snapshots."""

    id: int
    conversation_id: str
    sender_id: int
    receiver_id: int
    sender: UserSummary
    receiver: UserSummary
    content: str
    message_type: str
    file_url: str = ""
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class CreateConversationRequest(CamelModel):
    """Schema for opening a conversation with another user."""

    participant_id: int = Field(..., description="User id of the other participant")


class ConversationResponse(CamelModel):
    """Conversation handle returned when a conversation is opened."""

    id: str = Field(..., description="Participant-pair conversation identifier")
    participants: list[UserSummary]


class SendMessageRequest(CamelModel):
    """Schema for sending a message into a conversation over REST."""

    conversation_id: str = Field(
        ..., description="Pair key '<idA>-<idB>' or a legacy message id"
    )
    content: str = Field("", description="Message body")
    message_type: str = Field("text", description="text, image, file or audio")
    file_url: str = Field("", description="Attachment URL for non-text messages")


class ConversationSummaryResponse(CamelModel):
    """One row of the conversation list."""

    id: int = Field(..., description="Counterparty user id")
    conversation_id: str
    participants: list[UserSummary]
    last_message: MessageResponse
    unread_count: int


class ConversationListResponse(CamelModel):
    conversations: list[ConversationSummaryResponse]


class ConversationPageResponse(CamelModel):
    """A page of message history, oldest message first."""

    messages: list[MessageResponse]
    current_page: int
    has_more: bool


class SearchResponse(CamelModel):
    messages: list[MessageResponse]
    current_page: int
    total_pages: int
    total_messages: int


class UnreadCountResponse(CamelModel):
    unread_count: int


class StatusResponse(CamelModel):
    """Generic acknowledgement carrying an optional affected-row count."""

    message: str
    updated: int | None = None


def serialize_message(message: Message) -> dict:
    """Serialize a Message row into its camelCase wire form."""
    return MessageResponse.model_validate(message).to_wire()
