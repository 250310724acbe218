"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

import pytest

from shared.config import get_settings
from shared.models import Identity
from shared.retry import RetryPolicy
from modules.events.bus import EventBus
from modules.quota.guard import QuotaGuard
from modules.quota.policy import QuotaPolicy
from modules.session.engine import ReconciliationEngine
from modules.session.models import Plan, Session, UserProfile
from modules.session.store import MemorySessionStore
from modules.sync.service import InMemoryBackendSync


class FakeSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class EventRecorder:
    """Event bus subscriber that keeps every delivered event."""

    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]


def make_session(
    identity: Identity,
    plan: Plan = Plan.FREE,
    messages_used: int = 0,
    pending_delta: int = 0,
    degraded: bool = False,
) -> Session:
    """Build a session for tests."""
    return Session(
        identity=identity,
        profile=UserProfile(plan=plan, messages_used=messages_used),
        degraded=degraded,
        pending_delta=pending_delta,
    )


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the cached settings before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def identity() -> Identity:
    """Provide a consistent external identity."""
    return Identity(id="u1", email="u1@example.com", display_name="User One")


@pytest.fixture
def other_identity() -> Identity:
    """Provide a second, unrelated identity."""
    return Identity(id="u2", email="u2@example.com", display_name="User Two")


@pytest.fixture
def backend() -> InMemoryBackendSync:
    """In-memory backend of record, reachable by default."""
    return InMemoryBackendSync()


@pytest.fixture
def store() -> MemorySessionStore:
    """Empty in-memory session cache."""
    return MemorySessionStore()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def events(recorder: EventRecorder) -> EventBus:
    """Event bus with a recorder subscribed to everything."""
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def engine(backend, store, events, fake_sleep) -> ReconciliationEngine:
    """Engine wired to in-memory collaborators with a one-retry policy."""
    return ReconciliationEngine(
        backend=backend,
        store=store,
        events=events,
        retry_policy=RetryPolicy(attempts=2, backoff_seconds=0.5),
        sleep=fake_sleep,
    )


@pytest.fixture
def guard(engine: ReconciliationEngine) -> QuotaGuard:
    return QuotaGuard(engine, QuotaPolicy())


@pytest.fixture
def session_factory():
    """Factory for sessions in a given usage state."""
    return make_session
