"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class UserSummary(CamelModel):
    """Profile snapshot embedded in message and conversation payloads."""

    id: int
    name: str
    avatar: str = ""


class PresenceResponse(CamelModel):
    """Persisted online status plus live reachability across nodes."""

    user_id: int
    is_online: bool
    last_seen: datetime | None = None
    connected: bool = Field(False, description="True if a live connection is registered on any node")
