"""
In-process event bus.

- publish is synchronous: every current subscriber runs before it returns
- delivery follows registration order, exactly once per publish
- handler failures are isolated (logged) and never reach the publisher

Subscriptions are process-local; nothing is persisted or replayed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from .models import EventHandler, PublishedEvent, SessionEventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Subscription:
    handler: EventHandler
    kinds: Optional[frozenset[str]]

    def accepts(self, kind: str) -> bool:
        return self.kinds is None or kind in self.kinds


def _kind_value(kind: Union[str, SessionEventKind]) -> str:
    return kind.value if isinstance(kind, SessionEventKind) else str(kind)


class EventBus:
    """Synchronous publish/subscribe for session notifications."""

    def __init__(self) -> None:
        self._subs: list[_Subscription] = []

    def subscribe(
        self,
        handler: EventHandler,
        kinds: Optional[Iterable[Union[str, SessionEventKind]]] = None,
    ) -> None:
        """
        Register a handler.

        Args:
            handler: Called with each PublishedEvent it accepts
            kinds: Event kinds to receive; None receives everything
        """
        if not callable(handler):
            raise ValueError("handler must be callable")
        accepted = None if kinds is None else frozenset(_kind_value(k) for k in kinds)
        self._subs.append(_Subscription(handler=handler, kinds=accepted))

    def unsubscribe(self, handler: EventHandler) -> int:
        """Remove every subscription of handler. Returns how many were removed."""
        keep = [s for s in self._subs if s.handler != handler]
        removed = len(self._subs) - len(keep)
        self._subs = keep
        return removed

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(
        self,
        kind: Union[str, SessionEventKind],
        payload: Optional[dict[str, Any]] = None,
    ) -> PublishedEvent:
        """
        Deliver an event to all current subscribers.

        Subscribers added or removed by a handler take effect from the
        next publish.
        """
        event = PublishedEvent(kind=_kind_value(kind), payload=payload or {})
        for sub in list(self._subs):
            if not sub.accepts(event.kind):
                continue
            try:
                sub.handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.kind}")
        return event
