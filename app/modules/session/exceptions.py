"""
Session module exceptions.
"""

from shared.exceptions import ChatflowError, ValidationError


class SessionError(ChatflowError):
    """Base exception for session-related errors."""

    pass


class CacheCorruptionError(SessionError):
    """Raised by the session cache decoder; callers treat it as a cache miss."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            f"Cached session under {key!r} is unreadable: {reason}",
            code="CACHE_CORRUPTION",
            details={"key": key, "reason": reason},
        )


class NoActiveSessionError(SessionError):
    """Raised when an operation needs a canonical session and there is none."""

    def __init__(self, message: str = "No active session"):
        super().__init__(message, code="NO_ACTIVE_SESSION")


class InvalidAuthEventError(ValidationError):
    """Raised when an identity provider notification cannot be parsed."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_AUTH_EVENT")


__all__ = [
    "SessionError",
    "CacheCorruptionError",
    "NoActiveSessionError",
    "InvalidAuthEventError",
]
