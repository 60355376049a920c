"""Error taxonomy shared by the messaging services and transports.

Services raise these exceptions; the REST layer translates them into HTTP
responses and the realtime router turns them into named error events.
"""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base exception for messaging failures.

    Attributes:
        message: Human readable description safe to show to clients.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """Raised for bad or missing input (empty content, unknown type, bad id)."""


class NotFoundError(ChatError):
    """Raised when a message, user or legacy conversation does not exist."""


class UnauthorizedError(ChatError):
    """Raised when the actor may not touch the resource.

    Deleting someone else's message or reading a conversation the actor does
    not participate in both end up here.
    """


class AuthenticationError(ChatError):
    """Raised when a bearer credential is missing, malformed or invalid."""


class TransientStorageError(ChatError):
    """Raised when the backing store is unavailable."""
