"""
Session module interfaces.

The engine depends on these protocols, not on concrete cache or identity
provider implementations.
"""

from typing import Protocol, Optional, runtime_checkable

from .models import Session


@runtime_checkable
class ISessionStore(Protocol):
    """
    Local single-record cache of the last known session.

    Implementations never raise on unreadable data: a corrupt record is
    reported as absent.
    """

    def get(self) -> Optional[Session]:
        """Return the last persisted Session, or None."""
        ...

    def set(self, session: Session) -> None:
        """Persist the session, replacing any previous record."""
        ...

    def clear(self) -> None:
        """Remove the persisted record."""
        ...


@runtime_checkable
class IIdentityProvider(Protocol):
    """
    External identity provider adapter.

    The provider pushes notifications into ReconciliationEngine.on_auth_event;
    the engine only calls back into it to end the provider-side session on
    explicit logout.
    """

    async def sign_out(self) -> None:
        """End the provider-side session."""
        ...
