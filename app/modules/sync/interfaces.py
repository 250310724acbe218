"""
Backend sync module interface.

The session engine and quota guard depend on IBackendSync, not on the
HTTP client. This keeps them testable with the in-memory implementation.
"""

from typing import Protocol, runtime_checkable

from shared.models import Identity
from modules.session.models import UserProfile


@runtime_checkable
class IBackendSync(Protocol):
    """
    Request/response adapter to the backend of record.

    Implementations must be idempotent for upsert_profile and additive
    for update_usage.
    """

    async def upsert_profile(self, identity: Identity) -> UserProfile:
        """
        Create the profile if absent, else fetch it.

        Args:
            identity: Identity claim from the identity provider

        Returns:
            The backend's profile for this identity

        Raises:
            NetworkError: If the backend cannot be reached
            ServerError: If the backend rejects the request
            IdentityConflictError: If the email is bound to another identity
        """
        ...

    async def update_usage(self, identity_id: str, delta: int) -> int:
        """
        Add delta to the identity's usage counter.

        Args:
            identity_id: External identity ID
            delta: Number of messages to add (never an absolute value)

        Returns:
            The backend's authoritative messages_used after the increment

        Raises:
            NetworkError: If the backend cannot be reached
            ServerError: If the backend rejects the request
        """
        ...
