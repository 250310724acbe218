"""
Backend sync implementations.

Provides both in-memory (for testing and offline development) and
HTTP-backed (for production) implementations of IBackendSync.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings, get_settings
from shared.models import Identity
from modules.session.models import Plan, UserProfile

from .exceptions import IdentityConflictError, NetworkError, ServerError
from .interfaces import IBackendSync
from .models import (
    ErrorResponse,
    ProfileRequest,
    ProfileResponse,
    UsageRequest,
    UsageResponse,
)

logger = logging.getLogger(__name__)


IDENTITY_CONFLICT_CODE = "identity_conflict"


class InMemoryBackendSync:
    """
    Backend of record kept in memory.

    For testing and development. Set `reachable = False` to simulate an
    outage: every call then fails with NetworkError.
    """

    def __init__(self, default_plan: Plan = Plan.FREE):
        # In-memory storage for testing
        self._profiles: dict[str, UserProfile] = {}
        self._ids_by_email: dict[str, str] = {}
        self._default_plan = default_plan
        self.reachable = True
        self.calls: list[tuple[str, Any]] = []

    def _check_reachable(self) -> None:
        if not self.reachable:
            raise NetworkError("Backend unreachable (simulated outage)")

    def seed(self, identity: Identity, profile: UserProfile) -> None:
        """Store a profile directly, bypassing the call log."""
        self._profiles[identity.id] = profile
        self._ids_by_email[identity.email.lower()] = identity.id

    def get_profile(self, identity_id: str) -> Optional[UserProfile]:
        return self._profiles.get(identity_id)

    @property
    def profile_count(self) -> int:
        return len(self._profiles)

    async def upsert_profile(self, identity: Identity) -> UserProfile:
        """Create the profile if absent, else fetch it and stamp last_login."""
        self.calls.append(("upsert_profile", identity.id))
        self._check_reachable()

        email = identity.email.lower()
        bound_id = self._ids_by_email.get(email)
        if bound_id is not None and bound_id != identity.id:
            raise IdentityConflictError(identity.email, identity.id, bound_id)

        now = datetime.now(timezone.utc)
        existing = self._profiles.get(identity.id)
        if existing is None:
            profile = UserProfile(
                plan=self._default_plan,
                messages_used=0,
                created_at=now,
                last_login=now,
            )
            self._ids_by_email[email] = identity.id
        else:
            profile = existing.model_copy(update={"last_login": now})
        self._profiles[identity.id] = profile
        return profile

    async def update_usage(self, identity_id: str, delta: int) -> int:
        """Add delta to the stored counter."""
        self.calls.append(("update_usage", (identity_id, delta)))
        self._check_reachable()

        if delta <= 0:
            raise ServerError(400, "delta must be positive")
        profile = self._profiles.get(identity_id)
        if profile is None:
            raise ServerError(404, f"Unknown identity: {identity_id}")
        profile = profile.model_copy(
            update={"messages_used": profile.messages_used + delta}
        )
        self._profiles[identity_id] = profile
        return profile.messages_used


class HttpBackendSync:
    """
    BackendSync client speaking the backend's JSON REST contract.

    Endpoints:
        POST /profile  {identityId, email, displayName} -> {profile: {...}}
        POST /usage    {identityId, delta} -> {messagesUsed}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL
            timeout: Per-request timeout in seconds
            client: Optional pre-built client (tests inject a MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpBackendSync":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            return await self._client.post(path, json=body)
        except httpx.TransportError as e:
            raise NetworkError(f"POST {path} failed: {e}") from e

    @staticmethod
    def _error_body(response: httpx.Response) -> ErrorResponse:
        try:
            return ErrorResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            return ErrorResponse()

    @staticmethod
    def _parse(response: httpx.Response, model):
        try:
            return model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ServerError(
                response.status_code,
                f"Malformed backend response from {response.request.url.path}",
            ) from e

    async def upsert_profile(self, identity: Identity) -> UserProfile:
        request = ProfileRequest(
            identity_id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
        )
        response = await self._post("/profile", request.to_wire())

        if response.status_code >= 400:
            error = self._error_body(response)
            if response.status_code == 409 and error.error == IDENTITY_CONFLICT_CODE:
                raise IdentityConflictError(identity.email, identity.id, error.identity_id)
            raise ServerError(response.status_code, error.message)

        parsed: ProfileResponse = self._parse(response, ProfileResponse)
        if parsed.identity_id and parsed.identity_id != identity.id:
            raise IdentityConflictError(identity.email, identity.id, parsed.identity_id)
        return parsed.profile

    async def update_usage(self, identity_id: str, delta: int) -> int:
        request = UsageRequest(identity_id=identity_id, delta=delta)
        response = await self._post("/usage", request.to_wire())

        if response.status_code >= 400:
            error = self._error_body(response)
            raise ServerError(response.status_code, error.message)

        parsed: UsageResponse = self._parse(response, UsageResponse)
        logger.debug(f"Flushed {delta} message(s) for {identity_id}: now {parsed.messages_used}")
        return parsed.messages_used


def build_backend_sync(settings: Optional[Settings] = None) -> IBackendSync:
    """Create the HTTP backend sync client from settings."""
    settings = settings or get_settings()
    return HttpBackendSync(settings.backend_url, timeout=settings.backend_timeout)
