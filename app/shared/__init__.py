"""
Shared infrastructure for the Chatflow session core.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- exceptions: Base exception classes
- models: Identity and the camelCase wire model base
- retry: Bounded fixed-backoff retry helper

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .exceptions import (
    ChatflowError,
    ValidationError,
    AuthenticationError,
    ExternalServiceError,
)
from .models import Identity, WireModel, LOCAL_IDENTITY_PREFIX
from .retry import RetryPolicy, call_with_retry

__all__ = [
    "Settings",
    "get_settings",
    "ChatflowError",
    "ValidationError",
    "AuthenticationError",
    "ExternalServiceError",
    "Identity",
    "WireModel",
    "LOCAL_IDENTITY_PREFIX",
    "RetryPolicy",
    "call_with_retry",
]
