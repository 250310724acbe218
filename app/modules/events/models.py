"""
Event bus data models.

Session transitions are published under one of these kinds; the payload
is a plain dict so the bus stays independent of the session module.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field


class SessionEventKind(str, Enum):
    """Kinds of state-transition notifications consumed by the UI layer."""

    SESSION_READY = "session-ready"
    SESSION_CLEARED = "session-cleared"
    SESSION_DEGRADED = "session-degraded"
    QUOTA_EXCEEDED = "quota-exceeded"


class PublishedEvent(BaseModel):
    """A single delivered notification."""

    kind: str = Field(..., description="Event kind")
    payload: dict[str, Any] = Field(default_factory=dict)
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event was published",
    )

    model_config = {"frozen": True}


EventHandler = Callable[[PublishedEvent], None]
