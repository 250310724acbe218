"""
Events module.

Synchronous in-process publish/subscribe for session state transitions.

Public API:
- EventBus: Explicit bus instance owned by the session engine
- SessionEventKind: Kinds emitted to the UI layer
- PublishedEvent: Delivered notification
"""

from .bus import EventBus
from .models import SessionEventKind, PublishedEvent, EventHandler

__all__ = [
    "EventBus",
    "SessionEventKind",
    "PublishedEvent",
    "EventHandler",
]
