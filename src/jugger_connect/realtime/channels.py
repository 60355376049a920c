"""Named delivery channels over live connections."""

from __future__ import annotations

from typing import Any

from .connection import Connection


def private_channel(user_id: int) -> str:
    """Name of the channel every connection of ``user_id`` joins."""
    return str(user_id)


class ChannelHub:
    """Tracks every live connection and the channels each one joined.

    Emitting only enqueues frames, so no method here awaits and a caller
    never observes a half-applied membership change.
    """

    def __init__(self) -> None:
        self._channels: dict[str, set[Connection]] = {}
        self._connections: set[Connection] = set()

    def __len__(self) -> int:
        return len(self._connections)

    def add(self, connection: Connection) -> None:
        self._connections.add(connection)

    def discard(self, connection: Connection) -> None:
        """Forget a connection and drop it from every channel."""
        self._connections.discard(connection)
        for name in list(self._channels):
            self.leave(name, connection)

    def join(self, channel: str, connection: Connection) -> None:
        self._channels.setdefault(channel, set()).add(connection)

    def leave(self, channel: str, connection: Connection) -> None:
        members = self._channels.get(channel)
        if members is None:
            return
        members.discard(connection)
        if not members:
            self._channels.pop(channel, None)

    def members(self, channel: str) -> set[Connection]:
        return set(self._channels.get(channel, ()))

    def emit(
        self,
        channel: str,
        event: str,
        data: dict[str, Any],
        skip: Connection | None = None,
    ) -> int:
        """Send to every member of ``channel``; returns how many were queued."""
        delivered = 0
        for connection in self.members(channel):
            if connection is skip:
                continue
            if connection.emit(event, data):
                delivered += 1
        return delivered

    def broadcast(self, event: str, data: dict[str, Any]) -> int:
        """Send to every live connection."""
        delivered = 0
        for connection in list(self._connections):
            if connection.emit(event, data):
                delivered += 1
        return delivered
