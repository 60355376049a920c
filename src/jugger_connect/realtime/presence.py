"""Which users are reachable right now, and through which connection.

:class:`PresenceRegistry` is process-local: one entry per user, last connect
wins, everything is lost on restart. :class:`RedisPresenceDirectory` mirrors
the same ownership into Redis so several processes can agree on who is
online.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Final

import redis.asyncio as redis

from jugger_connect.core.settings import settings
from jugger_connect.db.time import utcnow
from jugger_connect.schemas.user import UserSummary

from .connection import Connection

logger = logging.getLogger(__name__)

PRESENCE_KEY_PREFIX: Final[str] = "presence"

# Delete the key only while it still names the withdrawing connection.
_WITHDRAW_SCRIPT: Final[str] = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# Extend the key while the refreshing connection owns it, or reclaim it once
# it has expired. A key owned by another connection is left alone.
_REFRESH_SCRIPT: Final[str] = """
local owner = redis.call('GET', KEYS[1])
if owner == ARGV[1] then
    return redis.call('EXPIRE', KEYS[1], ARGV[2])
end
if not owner then
    redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
    return 1
end
return 0
"""


@dataclass(frozen=True)
class PresenceEntry:
    """Active connection for a user plus the profile used in payloads."""

    connection: Connection
    profile: UserSummary | None = None
    registered_at: datetime = field(default_factory=utcnow)


class PresenceRegistry:
    """In-memory map of user id to its single active connection."""

    def __init__(self) -> None:
        self._entries: dict[int, PresenceEntry] = {}
        self._lock = Lock()

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register(
        self,
        user_id: int,
        connection: Connection,
        profile: UserSummary | None = None,
    ) -> PresenceEntry | None:
        """Make ``connection`` the user's active connection.

        Returns:
            The entry that was replaced, if any.
        """
        with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = PresenceEntry(connection=connection, profile=profile)
        return previous

    def unregister(self, user_id: int, connection: Connection | None = None) -> bool:
        """Remove the user's entry.

        When ``connection`` is given the entry is removed only if it still
        points at that connection, so a superseded connection closing late
        leaves the newer one in place.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            current = self._entries.get(user_id)
            if current is None:
                return False
            if connection is not None and current.connection is not connection:
                return False
            del self._entries[user_id]
            return True

    def lookup(self, user_id: int) -> Connection | None:
        entry = self.entry(user_id)
        return entry.connection if entry else None

    def entry(self, user_id: int) -> PresenceEntry | None:
        with self._lock:
            return self._entries.get(user_id)

    def online_user_ids(self) -> list[int]:
        with self._lock:
            return list(self._entries)


class RedisPresenceDirectory:
    """Shared presence ownership across processes, keyed ``presence:<user_id>``.

    The stored value is ``<node_id>:<connection_id>``. Withdrawal is a
    compare-and-delete so a stale connection on any node cannot evict the
    user's newer registration.
    """

    def __init__(
        self,
        client: redis.Redis,
        node_id: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self._client = client
        self.node_id = node_id or settings.node_id
        self.ttl_seconds = ttl_seconds or settings.presence_ttl_seconds

    @classmethod
    def from_settings(cls) -> RedisPresenceDirectory:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return cls(client)

    @property
    def refresh_interval(self) -> float:
        """Seconds between refreshes; a third of the TTL."""
        return max(self.ttl_seconds / 3, 1.0)

    @staticmethod
    def key(user_id: int) -> str:
        return f"{PRESENCE_KEY_PREFIX}:{user_id}"

    def token(self, connection: Connection) -> str:
        return f"{self.node_id}:{connection.id}"

    async def publish(self, user_id: int, connection: Connection) -> None:
        await self._client.set(self.key(user_id), self.token(connection), ex=self.ttl_seconds)

    async def refresh(self, user_id: int, connection: Connection) -> bool:
        """Keep the user's key alive for another TTL.

        Returns:
            False once another connection owns the key, so the caller can stop
            refreshing.
        """
        refreshed = await self._client.eval(
            _REFRESH_SCRIPT, 1, self.key(user_id), self.token(connection), self.ttl_seconds
        )
        return bool(refreshed)

    async def withdraw(self, user_id: int, connection: Connection) -> bool:
        removed = await self._client.eval(
            _WITHDRAW_SCRIPT, 1, self.key(user_id), self.token(connection)
        )
        return bool(removed)

    async def is_online(self, user_id: int) -> bool:
        return bool(await self._client.exists(self.key(user_id)))

    async def close(self) -> None:
        await self._client.aclose()
