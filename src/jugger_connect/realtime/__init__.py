"""Realtime presence and event delivery."""

from .channels import ChannelHub, private_channel
from .connection import Connection
from .presence import PresenceEntry, PresenceRegistry, RedisPresenceDirectory
from .router import EventRouter, get_event_router

__all__ = [
    "ChannelHub",
    "Connection",
    "EventRouter",
    "PresenceEntry",
    "PresenceRegistry",
    "RedisPresenceDirectory",
    "get_event_router",
    "private_channel",
]
