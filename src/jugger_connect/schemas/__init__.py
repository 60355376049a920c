"""
Pydantic schemas for API request/response models and realtime payloads.

These schemas define the structure of API data for serialization and validation.
"""

from .message import (
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
    serialize_message,
)
from .realtime import (
    EventEnvelope,
    MarkReadPayload,
    PresenceEvent,
    SendMessagePayload,
    StatusPayload,
    TypingPayload,
)
from .user import PresenceResponse, UserSummary

__all__ = [
    "ConversationListResponse", "ConversationPageResponse", "ConversationResponse",
    "ConversationSummaryResponse", "CreateConversationRequest",
    "MessageResponse", "SearchResponse", "SendMessageRequest",
    "StatusResponse", "UnreadCountResponse", "serialize_message",
    "EventEnvelope", "MarkReadPayload", "PresenceEvent",
    "SendMessagePayload", "StatusPayload", "TypingPayload",
    "PresenceResponse", "UserSummary",
]
