"""Tests for the in-memory backend sync."""

import pytest

from shared.models import Identity
from modules.session.models import Plan, UserProfile
from modules.sync.exceptions import IdentityConflictError, NetworkError, ServerError
from modules.sync.interfaces import IBackendSync
from modules.sync.service import HttpBackendSync, InMemoryBackendSync, build_backend_sync
from shared.config import Settings


class TestInMemoryBackendSync:
    def test_implements_interface(self, backend):
        assert isinstance(backend, IBackendSync)

    @pytest.mark.asyncio
    async def test_upsert_creates_profile(self, backend, identity):
        """First upsert should create a free profile."""
        profile = await backend.upsert_profile(identity)

        assert profile.plan == Plan.FREE
        assert profile.messages_used == 0
        assert profile.messages_limit == 20
        assert backend.profile_count == 1

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, backend, identity):
        """Two upserts for the same identity yield the same profile, one record."""
        first = await backend.upsert_profile(identity)
        second = await backend.upsert_profile(identity)

        assert backend.profile_count == 1
        assert second.plan == first.plan
        assert second.messages_used == first.messages_used
        assert second.created_at == first.created_at

    @pytest.mark.asyncio
    async def test_upsert_returns_seeded_profile(self, backend, identity):
        backend.seed(identity, UserProfile(plan=Plan.STANDARD, messages_used=1999))

        profile = await backend.upsert_profile(identity)

        assert profile.plan == Plan.STANDARD
        assert profile.messages_used == 1999
        assert profile.messages_limit == 2000

    @pytest.mark.asyncio
    async def test_upsert_conflicting_email(self, backend, identity):
        """Same email under a different identity is a conflict."""
        await backend.upsert_profile(identity)
        impostor = Identity(id="other-id", email=identity.email.upper())

        with pytest.raises(IdentityConflictError) as exc_info:
            await backend.upsert_profile(impostor)

        assert exc_info.value.details["existing_id"] == identity.id
        assert backend.profile_count == 1

    @pytest.mark.asyncio
    async def test_update_usage_is_additive(self, backend, identity):
        await backend.upsert_profile(identity)

        assert await backend.update_usage(identity.id, 1) == 1
        assert await backend.update_usage(identity.id, 3) == 4
        assert backend.get_profile(identity.id).messages_used == 4

    @pytest.mark.asyncio
    async def test_update_usage_unknown_identity(self, backend):
        with pytest.raises(ServerError) as exc_info:
            await backend.update_usage("ghost", 1)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_update_usage_rejects_non_positive_delta(self, backend, identity):
        await backend.upsert_profile(identity)
        with pytest.raises(ServerError):
            await backend.update_usage(identity.id, 0)

    @pytest.mark.asyncio
    async def test_unreachable(self, backend, identity):
        """A simulated outage fails every call with NetworkError."""
        backend.reachable = False

        with pytest.raises(NetworkError):
            await backend.upsert_profile(identity)
        with pytest.raises(NetworkError):
            await backend.update_usage(identity.id, 1)

        assert backend.calls == [
            ("upsert_profile", identity.id),
            ("update_usage", (identity.id, 1)),
        ]

    @pytest.mark.asyncio
    async def test_default_plan(self, identity):
        backend = InMemoryBackendSync(default_plan=Plan.PREMIUM)
        profile = await backend.upsert_profile(identity)
        assert profile.messages_limit == 10000


class TestBuildBackendSync:
    @pytest.mark.asyncio
    async def test_builds_http_client(self):
        client = build_backend_sync(Settings(backend_url="http://backend.test/"))
        assert isinstance(client, HttpBackendSync)
        await client.aclose()
