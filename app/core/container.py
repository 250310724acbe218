"""
Composition root for the session core.

Wires the engine, quota guard, event bus, backend client and session cache
from settings. The host application builds one container at startup and
passes it (or the engine it holds) by reference; there is no module-level
instance to reach for.
"""

import logging
from typing import TYPE_CHECKING, Optional

from shared.config import Settings, get_settings
from shared.retry import RetryPolicy

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.events.bus import EventBus
    from modules.quota.guard import QuotaGuard
    from modules.session.engine import ReconciliationEngine
    from modules.session.interfaces import IIdentityProvider, ISessionStore
    from modules.sync.interfaces import IBackendSync

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured log level to the root logger."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class SessionContainer:
    """
    Container for the session core's collaborators.

    Collaborators are created lazily on first access; any of them can be
    injected up front (tests pass in-memory implementations).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: "IBackendSync | None" = None,
        store: "ISessionStore | None" = None,
        identity_provider: "IIdentityProvider | None" = None,
        events: "EventBus | None" = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._backend = backend
        self._store = store
        self._identity_provider = identity_provider
        self._events = events
        self._engine: "ReconciliationEngine | None" = None
        self._quota: "QuotaGuard | None" = None

    @property
    def events(self) -> "EventBus":
        """Get the event bus instance."""
        if self._events is None:
            from modules.events.bus import EventBus
            self._events = EventBus()
        return self._events

    @property
    def backend(self) -> "IBackendSync":
        """Get the backend sync client."""
        if self._backend is None:
            from modules.sync.service import build_backend_sync
            self._backend = build_backend_sync(self.settings)
        return self._backend

    @property
    def store(self) -> "ISessionStore":
        """Get the session cache."""
        if self._store is None:
            from modules.session.store import build_session_store
            self._store = build_session_store(self.settings)
        return self._store

    @property
    def engine(self) -> "ReconciliationEngine":
        """Get the reconciliation engine."""
        if self._engine is None:
            from modules.session.engine import ReconciliationEngine
            self._engine = ReconciliationEngine(
                backend=self.backend,
                store=self.store,
                events=self.events,
                identity_provider=self._identity_provider,
                retry_policy=RetryPolicy.from_settings(self.settings),
            )
        return self._engine

    @property
    def quota(self) -> "QuotaGuard":
        """Get the quota guard."""
        if self._quota is None:
            from modules.quota.guard import QuotaGuard
            from modules.quota.policy import QuotaPolicy
            self._quota = QuotaGuard(self.engine, QuotaPolicy.from_settings(self.settings))
        return self._quota

    async def aclose(self) -> None:
        """Release network resources held by the backend client."""
        close = getattr(self._backend, "aclose", None)
        if close is not None:
            await close()


def build_session_core(settings: Optional[Settings] = None, **overrides) -> SessionContainer:
    """
    Build the production session core from settings.

    Keyword overrides (backend, store, identity_provider, events) replace
    the collaborators that would otherwise be built from settings.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    container = SessionContainer(settings, **overrides)
    logger.info(f"{settings.app_name} v{settings.app_version} wired to {settings.backend_url}")
    return container
