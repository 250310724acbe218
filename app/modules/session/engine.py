"""
Session reconciliation engine.

Merges three differently-trusted sources into one canonical Session:

- the identity provider (who the user is)
- the backend of record (plan and authoritative usage)
- the local session cache (last known session, authoritative only while
  the backend is unreachable)

Every transition runs under a single asyncio.Lock, network calls included,
so callers that need a settled view simply wait for the lock, and auth
events take effect in the order they arrive. A generation counter is
bumped as soon as a sign-out arrives; backend results obtained under an
older generation belong to a signed-out session and are discarded.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ExternalServiceError
from shared.models import Identity
from shared.retry import RetryPolicy, Sleep, call_with_retry
from modules.events.bus import EventBus
from modules.events.models import SessionEventKind
from modules.sync.exceptions import IdentityConflictError

from .exceptions import InvalidAuthEventError
from .interfaces import IIdentityProvider, ISessionStore
from .models import (
    AuthEvent,
    AuthEventKind,
    AuthResult,
    Session,
    SessionState,
    UserProfile,
)

if TYPE_CHECKING:
    from modules.sync.interfaces import IBackendSync

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUPERSEDED = "superseded by a sign-out"


def parse_auth_notification(raw: dict[str, Any]) -> AuthEvent:
    """
    Turn a raw identity provider notification into an AuthEvent.

    Accepts `{"event": "authenticated", "identity": {id, email, displayName}}`
    and `{"event": "signedOut"}`.

    Raises:
        InvalidAuthEventError: If the notification is malformed
    """
    if not isinstance(raw, dict):
        raise InvalidAuthEventError("notification must be an object")
    try:
        return AuthEvent(kind=raw.get("event"), identity=raw.get("identity"))
    except PydanticValidationError as e:
        raise InvalidAuthEventError(f"invalid notification: {e.error_count()} error(s)") from e


class ReconciliationEngine:
    """
    Owner of the canonical Session and its state machine.

    SignedOut -> Authenticating -> {Reconciled, Degraded} -> SignedOut,
    with Degraded -> Reconciled on a successful reconcile_pending() and
    Reconciled -> Degraded when a flush fails.

    Construct one per process and pass it by reference to consumers.
    """

    def __init__(
        self,
        backend: "IBackendSync",
        store: ISessionStore,
        events: Optional[EventBus] = None,
        identity_provider: Optional[IIdentityProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the engine.

        Args:
            backend: Backend of record client
            store: Local session cache
            events: Bus for state-transition notifications (a new one if omitted)
            identity_provider: Provider to sign out of on explicit logout
            retry_policy: Attempts/backoff for backend calls
            sleep: Awaitable sleep used between retries (injectable for tests)
        """
        self._backend = backend
        self._store = store
        self.events = events or EventBus()
        self._identity_provider = identity_provider
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

        self._session: Optional[Session] = None
        self._state = SessionState.SIGNED_OUT
        self._lock = asyncio.Lock()
        self._generation = 0

    # ---- read side ----
    @property
    def session(self) -> Optional[Session]:
        """Canonical session as of now (may be mid-transition)."""
        return self._session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        """Number of sign-outs seen so far."""
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def backend(self) -> "IBackendSync":
        return self._backend

    async def current_session(self) -> Optional[Session]:
        """Canonical session once any in-flight transition has settled."""
        async with self._lock:
            return self._session

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[int]:
        """
        Hold the session lock; yields the generation current at acquisition.

        Collaborators (the quota guard) mutate the session only inside this
        block and must re-check the generation after every await.
        """
        async with self._lock:
            yield self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ---- identity provider entry points ----
    async def on_auth_event(self, event: AuthEvent) -> AuthResult:
        """Single entry point for identity provider notifications."""
        if event.kind == AuthEventKind.AUTHENTICATED:
            return await self._authenticate(event.identity)
        return await self._sign_out()

    async def on_notification(self, raw: dict[str, Any]) -> AuthResult:
        """Parse a raw provider notification and apply it."""
        try:
            event = parse_auth_notification(raw)
        except InvalidAuthEventError as e:
            logger.warning(f"Rejected auth notification: {e.message}")
            return AuthResult(success=False, reason=e.message)
        return await self.on_auth_event(event)

    async def sign_in_local(self, email: str) -> AuthResult:
        """
        Email-only local login.

        Creates a `local:` identity; a later external sign-in with the same
        email inherits its unflushed usage.
        """
        try:
            identity = Identity.local(email)
        except PydanticValidationError:
            return AuthResult(success=False, reason="Please enter a valid email")
        return await self._authenticate(identity)

    async def logout(self) -> AuthResult:
        """
        Explicit user-initiated sign-out.

        Local state is cleared even when the identity provider fails to
        end its own session; that failure is reported in the result.
        """
        provider_error: Optional[str] = None
        if self._identity_provider is not None:
            try:
                await self._identity_provider.sign_out()
            except Exception as e:
                logger.exception("Identity provider sign-out failed")
                provider_error = str(e) or e.__class__.__name__

        result = await self._sign_out()
        if provider_error is not None:
            return AuthResult(success=False, reason=f"Provider sign-out failed: {provider_error}")
        return result

    async def restore(self) -> Optional[Session]:
        """
        Load the cached session at startup, before the provider reports in.

        The restored session is degraded until the backend confirms it. An
        unreadable cache leaves the engine signed out.
        """
        async with self._lock:
            if self._session is not None:
                return self._session
            cached = self._store.get()
            if cached is None:
                self._state = SessionState.SIGNED_OUT
                return None
            session = cached.model_copy(update={"degraded": True})
            self._establish(session)
            self.events.publish(SessionEventKind.SESSION_DEGRADED, {"session": session})
            return session

    async def reconcile_pending(self) -> Optional[Session]:
        """
        Bring a degraded session back in line with the backend.

        No-op for reconciled sessions or when signed out.
        """
        async with self.locked() as generation:
            return await self.reconcile_locked(generation)

    # ---- transitions ----
    async def _authenticate(self, identity: Identity) -> AuthResult:
        generation = self._generation

        async with self._lock:
            if not self.is_current(generation):
                return AuthResult(success=False, reason=SUPERSEDED)

            self._state = SessionState.AUTHENTICATING
            try:
                return await self._resolve(identity, generation)
            finally:
                # Failed or superseded attempts fall back to whatever session is canonical
                if self._state == SessionState.AUTHENTICATING:
                    self._state = self._settled_state()

    async def _resolve(self, identity: Identity, generation: int) -> AuthResult:
        """Upsert the profile and merge it with the cache; the caller holds the lock."""
        cached = self._cached_for(identity)

        try:
            profile = await self.call_backend(
                lambda: self._backend.upsert_profile(identity),
                "upsert_profile",
            )
        except IdentityConflictError as e:
            logger.warning(f"Sign-in rejected for {identity.id}: {e.message}")
            return AuthResult(success=False, reason=e.message)
        except ExternalServiceError as e:
            if not self.is_current(generation):
                return AuthResult(success=False, reason=SUPERSEDED)
            if not e.transient:
                logger.warning(f"Sign-in failed for {identity.id}: {e.message}")
                return AuthResult(success=False, reason=e.message)
            logger.warning(f"Backend unavailable, degrading session for {identity.id}")
            session = self._degraded_session(identity, cached)
            self._establish(session)
            self.events.publish(SessionEventKind.SESSION_DEGRADED, {"session": session})
            return AuthResult(success=True, session=session)

        if not self.is_current(generation):
            return AuthResult(success=False, reason=SUPERSEDED)

        session = self._merge(identity, profile, cached)
        if session.pending_delta:
            session = await self._flush_carried(session)
            if not self.is_current(generation):
                # The sign-out that superseded us clears the cache, flushed usage included
                return AuthResult(success=False, reason=SUPERSEDED)

        self._establish(session)
        kind = (
            SessionEventKind.SESSION_DEGRADED
            if session.degraded
            else SessionEventKind.SESSION_READY
        )
        self.events.publish(kind, {"session": session})
        logger.info(f"Session established for {identity.id} ({self._state.value})")
        return AuthResult(success=True, session=session)

    async def _sign_out(self) -> AuthResult:
        self._generation += 1

        async with self._lock:
            previous = self._session
            self._session = None
            self._state = SessionState.SIGNED_OUT
            result = AuthResult(success=True)
            try:
                self._store.clear()
            except OSError as e:
                logger.error(f"Failed to clear session cache: {e}")
                result = AuthResult(success=False, reason=f"Could not clear session cache: {e}")
            self.events.publish(SessionEventKind.SESSION_CLEARED, {})
            if previous is not None:
                logger.info(f"Session cleared for {previous.identity_id}")
            return result

    async def _flush_carried(self, session: Session) -> Session:
        """Flush pending usage carried over from the cache at sign-in."""
        try:
            used = await self.call_backend(
                lambda: self._backend.update_usage(session.identity_id, session.pending_delta),
                "update_usage",
            )
        except ExternalServiceError as e:
            logger.warning(
                f"Could not flush {session.pending_delta} carried message(s) "
                f"for {session.identity_id}: {e.message}"
            )
            return session.model_copy(update={"degraded": True})
        return session.with_usage(used, pending_delta=0)

    async def reconcile_locked(self, generation: int) -> Optional[Session]:
        """
        Reconcile a degraded session; the caller holds the lock.

        The profile is upserted first (it may never have been created if the
        backend was down at sign-in), then the pending delta is flushed in a
        single additive call.
        """
        session = self._session
        if session is None or not session.degraded:
            return session

        identity = session.identity
        try:
            profile = await self.call_backend(
                lambda: self._backend.upsert_profile(identity),
                "upsert_profile",
            )
            used = profile.messages_used
            if session.pending_delta:
                used = await self.call_backend(
                    lambda: self._backend.update_usage(identity.id, session.pending_delta),
                    "update_usage",
                )
        except (ExternalServiceError, IdentityConflictError) as e:
            logger.info(f"Reconciliation deferred for {identity.id}: {e.message}")
            return session

        if not self.is_current(generation):
            return self._session

        refreshed = profile.model_copy(
            update={"messages_used": max(used, session.profile.messages_used)}
        )
        reconciled = session.model_copy(
            update={"profile": refreshed, "pending_delta": 0, "degraded": False}
        )
        self._establish(reconciled)
        self.events.publish(SessionEventKind.SESSION_READY, {"session": reconciled})
        logger.info(
            f"Reconciled {identity.id}: flushed {session.pending_delta} message(s), "
            f"now {refreshed.messages_used}/{refreshed.messages_limit}"
        )
        return reconciled

    # ---- helpers shared with the quota guard ----
    async def call_backend(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Run a backend call under the engine's retry policy."""
        return await call_with_retry(operation, self._retry_policy, self._sleep, description)

    def commit(self, session: Session) -> None:
        """
        Replace the canonical session in place; the caller holds the lock.

        A session that turns degraded here transitions Reconciled -> Degraded
        and notifies subscribers.
        """
        was_degraded = self._state == SessionState.DEGRADED
        self._establish(session)
        if session.degraded and not was_degraded:
            logger.warning(f"Session for {session.identity_id} is now degraded")
            self.events.publish(SessionEventKind.SESSION_DEGRADED, {"session": session})

    def _establish(self, session: Session) -> None:
        self._session = session
        self._state = self._settled_state()
        self._persist(session)

    def _settled_state(self) -> SessionState:
        """State implied by the canonical session alone."""
        if self._session is None:
            return SessionState.SIGNED_OUT
        return SessionState.DEGRADED if self._session.degraded else SessionState.RECONCILED

    def _persist(self, session: Session) -> None:
        try:
            self._store.set(session)
        except OSError as e:
            logger.error(f"Failed to write session cache for {session.identity_id}: {e}")

    def _cached_for(self, identity: Identity) -> Optional[Session]:
        """
        Cached session usable for this identity.

        Same identity: used as is. A local email-only session with the same
        email: linked, its unflushed usage carries over. Anything else
        belongs to another user and is ignored.
        """
        cached = self._store.get()
        if cached is None:
            return None
        if cached.identity_id == identity.id:
            return cached
        if (
            cached.identity.is_local
            and not identity.is_local
            and cached.identity.email.lower() == identity.email.lower()
        ):
            logger.info(f"Linking local session {cached.identity_id} to {identity.id}")
            return cached
        logger.info(f"Ignoring cached session of {cached.identity_id}")
        return None

    @staticmethod
    def _merge(identity: Identity, profile: UserProfile, cached: Optional[Session]) -> Session:
        """Backend-confirmed fields win; cached pending usage is kept on top."""
        pending = cached.pending_delta if cached else 0
        merged = profile.model_copy(update={"messages_used": profile.messages_used + pending})
        return Session(identity=identity, profile=merged, degraded=False, pending_delta=pending)

    @staticmethod
    def _degraded_session(identity: Identity, cached: Optional[Session]) -> Session:
        if cached is not None:
            return Session(
                identity=identity,
                profile=cached.profile,
                degraded=True,
                pending_delta=cached.pending_delta,
            )
        return Session(identity=identity, profile=UserProfile.default(), degraded=True)
