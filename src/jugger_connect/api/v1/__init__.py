# src/jugger_connect/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import chat_router, realtime_router, users_router

__all__ = [
    "chat_router",
    "realtime_router",
    "users_router",
]
