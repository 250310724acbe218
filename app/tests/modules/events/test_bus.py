"""Tests for the in-process event bus."""

import pytest

from modules.events.bus import EventBus
from modules.events.models import PublishedEvent, SessionEventKind


class TestPublishSubscribe:
    def test_publish_calls_all_subscribers(self):
        """Every subscriber should receive the event once."""
        bus = EventBus()
        got1, got2 = [], []
        bus.subscribe(got1.append)
        bus.subscribe(got2.append)

        bus.publish(SessionEventKind.SESSION_READY, {"session": "s"})

        assert len(got1) == 1
        assert len(got2) == 1
        assert got1[0].kind == "session-ready"
        assert got1[0].payload == {"session": "s"}

    def test_registration_order(self):
        """Subscribers run in the order they registered."""
        bus = EventBus()
        seen = []
        bus.subscribe(lambda ev: seen.append("first"))
        bus.subscribe(lambda ev: seen.append("second"))
        bus.subscribe(lambda ev: seen.append("third"))

        bus.publish("session-cleared")

        assert seen == ["first", "second", "third"]

    def test_publish_is_synchronous(self):
        """Handlers have run by the time publish returns."""
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append)
        bus.publish(SessionEventKind.SESSION_CLEARED)
        assert len(seen) == 1

    def test_publish_returns_event(self):
        bus = EventBus()
        event = bus.publish(SessionEventKind.QUOTA_EXCEEDED, {"n": 1})
        assert isinstance(event, PublishedEvent)
        assert event.kind == "quota-exceeded"

    def test_publish_without_subscribers(self):
        bus = EventBus()
        event = bus.publish("session-cleared")
        assert event.payload == {}

    def test_kind_filter(self):
        """Subscribers can restrict themselves to some kinds."""
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append, kinds=[SessionEventKind.QUOTA_EXCEEDED])

        bus.publish(SessionEventKind.SESSION_READY)
        bus.publish(SessionEventKind.QUOTA_EXCEEDED)

        assert [e.kind for e in seen] == ["quota-exceeded"]

    def test_subscribe_rejects_non_callable(self):
        bus = EventBus()
        with pytest.raises(ValueError):
            bus.subscribe("not-callable")


class TestUnsubscribe:
    def test_unsubscribe_stops_delivery(self):
        bus = EventBus()
        seen = []
        bus.subscribe(seen.append)

        removed = bus.unsubscribe(seen.append)
        bus.publish(SessionEventKind.SESSION_READY)

        assert removed == 1
        assert seen == []
        assert bus.subscriber_count == 0

    def test_unsubscribe_unknown_handler(self):
        bus = EventBus()
        assert bus.unsubscribe(lambda ev: None) == 0

    def test_subscribe_during_publish_applies_next_time(self):
        """A handler added while publishing only sees later events."""
        bus = EventBus()
        late = []

        def add_late(_ev):
            bus.subscribe(late.append)

        bus.subscribe(add_late)
        bus.publish(SessionEventKind.SESSION_READY)
        assert late == []

        bus.unsubscribe(add_late)
        bus.publish(SessionEventKind.SESSION_CLEARED)
        assert [e.kind for e in late] == ["session-cleared"]


class TestHandlerIsolation:
    def test_handler_exception_isolated(self):
        """A failing handler must not stop later subscribers."""
        bus = EventBus()
        ok = {"n": 0}

        def bad(_ev):
            raise RuntimeError("boom")

        def good(_ev):
            ok["n"] += 1

        bus.subscribe(bad)
        bus.subscribe(good)
        bus.publish(SessionEventKind.SESSION_READY)

        assert ok["n"] == 1

    def test_handler_exception_logged(self, caplog):
        bus = EventBus()

        def bad(_ev):
            raise RuntimeError("boom")

        bus.subscribe(bad)
        bus.publish(SessionEventKind.SESSION_READY)

        assert "Event handler failed for session-ready" in caplog.text
