"""Realtime event envelopes and payloads.

Every frame on the websocket is a JSON object ``{"event": <name>, "data":
{...}}`` in both directions.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .common import CamelModel


class EventEnvelope(BaseModel):
    """Frame exchanged over the websocket."""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class SendMessagePayload(CamelModel):
    receiver_id: int
    content: str = ""
    message_type: str = "text"
    file_url: str = ""


class TypingPayload(CamelModel):
    receiver_id: int


class MarkReadPayload(CamelModel):
    sender_id: int


class StatusPayload(CamelModel):
    status: str = Field(..., description="'online' marks the user online, anything else offline")


class PresenceEvent(CamelModel):
    """Payload of ``user_online``, ``user_offline`` and ``user_status_update``."""

    user_id: int
    is_online: bool
    last_seen: datetime | None = None
