"""
Base exception classes for the Chatflow session core.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application.
"""

from typing import Optional, Any


class ChatflowError(Exception):
    """
    Base exception for all Chatflow errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for structured failures and logs."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ChatflowError):
    """Input validation failed."""

    pass


class AuthenticationError(ChatflowError):
    """Authentication failed (conflicting or missing identity)."""

    pass


class ExternalServiceError(ChatflowError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service

    @property
    def transient(self) -> bool:
        """Whether retrying the same call may succeed."""
        return False
