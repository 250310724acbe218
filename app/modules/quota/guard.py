"""
Quota guard: plan-based message limits and usage recording.

Checks are evaluated against the engine's canonical session once any
in-flight reconciliation has settled, never against a caller's stale
snapshot. Usage increments are additive and are never dropped: when the
backend cannot confirm one it is kept as pending usage on the session.
"""

import logging
from typing import Optional

from shared.exceptions import ExternalServiceError
from modules.events.models import SessionEventKind
from modules.session.engine import ReconciliationEngine
from modules.session.exceptions import NoActiveSessionError
from modules.session.models import Session

from .models import QuotaStatus
from .policy import QuotaPolicy

logger = logging.getLogger(__name__)


class QuotaGuard:
    """Enforces per-plan message limits for the engine's session."""

    def __init__(self, engine: ReconciliationEngine, policy: Optional[QuotaPolicy] = None):
        self._engine = engine
        self._policy = policy or QuotaPolicy()

    @property
    def policy(self) -> QuotaPolicy:
        return self._policy

    def limit_for(self, session: Session) -> int:
        return self._policy.limit(session.profile.plan)

    def can_proceed(self, session: Session) -> bool:
        """True iff usage is strictly below the plan limit."""
        return session.profile.messages_used < self.limit_for(session)

    def remaining(self, session: Session) -> int:
        return max(self.limit_for(session) - session.profile.messages_used, 0)

    def status(self, session: Session) -> QuotaStatus:
        return QuotaStatus(
            allowed=self.can_proceed(session),
            plan=session.profile.plan,
            used=session.profile.messages_used,
            limit=self.limit_for(session),
            pending=session.pending_delta,
            degraded=session.degraded,
        )

    def _current(self, expected: Optional[Session]) -> Session:
        current = self._engine.session
        if current is None:
            raise NoActiveSessionError()
        if expected is not None and expected.identity_id != current.identity_id:
            raise NoActiveSessionError(
                f"Session for {expected.identity_id} is no longer active"
            )
        return current

    async def check(self, session: Optional[Session] = None) -> QuotaStatus:
        """
        Settled quota check for the canonical session.

        A degraded session first gets a chance to reconcile, since a
        successful check is how backend reachability is noticed. Emits
        quota-exceeded when the limit has been reached.

        Raises:
            NoActiveSessionError: If no session is active (or a different one is)
        """
        async with self._engine.locked() as generation:
            current = self._current(session)
            if current.degraded:
                current = await self._engine.reconcile_locked(generation) or current
            status = self.status(current)

        if not status.allowed:
            logger.info(
                f"Quota exceeded for {current.identity_id}: "
                f"{status.used}/{status.limit} ({status.plan.value})"
            )
            self._engine.events.publish(SessionEventKind.QUOTA_EXCEEDED, {"session": current})
        return status

    async def record_usage(self, session: Optional[Session] = None) -> Session:
        """
        Count one message against the canonical session.

        Reconciled sessions flush the increment immediately and return the
        backend-confirmed count. Degraded sessions, or a failed flush, keep
        the increment as pending usage and return the local session.

        Raises:
            NoActiveSessionError: If no session is active (or a different one is)
        """
        async with self._engine.locked() as generation:
            current = self._current(session)
            incremented = current.with_usage(
                current.profile.messages_used + 1, current.pending_delta
            )
            pending = incremented.model_copy(
                update={"pending_delta": current.pending_delta + 1}
            )

            if current.degraded:
                self._engine.commit(pending)
                return pending

            try:
                used = await self._engine.call_backend(
                    lambda: self._engine.backend.update_usage(current.identity_id, 1),
                    "update_usage",
                )
            except ExternalServiceError as e:
                if not self._engine.is_current(generation):
                    logger.debug(f"Discarding flush result for signed-out {current.identity_id}")
                    return pending
                logger.warning(
                    f"Usage flush failed for {current.identity_id}, keeping it pending: {e.message}"
                )
                degraded = pending.model_copy(update={"degraded": True})
                self._engine.commit(degraded)
                return degraded

            if not self._engine.is_current(generation):
                logger.debug(f"Discarding flush result for signed-out {current.identity_id}")
                return incremented

            confirmed = incremented.with_usage(
                used + current.pending_delta, current.pending_delta
            )
            self._engine.commit(confirmed)
            return confirmed
