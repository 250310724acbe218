"""Tests for shared/models.py."""

import pytest

from shared.models import Identity, LOCAL_IDENTITY_PREFIX


class TestIdentity:
    def test_create_identity(self):
        """Should create an identity from snake_case fields."""
        identity = Identity(id="u1", email="u1@example.com", display_name="User One")
        assert identity.id == "u1"
        assert identity.email == "u1@example.com"
        assert identity.display_name == "User One"

    def test_parse_wire_format(self):
        """Should accept the provider's camelCase payload."""
        identity = Identity.model_validate(
            {"id": "u1", "email": "u1@example.com", "displayName": "User One"}
        )
        assert identity.display_name == "User One"

    def test_to_wire_uses_camel_case(self):
        identity = Identity(id="u1", email="u1@example.com", display_name="User One")
        assert identity.to_wire() == {
            "id": "u1",
            "email": "u1@example.com",
            "displayName": "User One",
        }

    def test_identity_is_immutable(self):
        """Identity should be immutable once established."""
        identity = Identity(id="u1", email="u1@example.com")
        with pytest.raises(Exception):  # Pydantic ValidationError
            identity.id = "u2"

    def test_requires_id(self):
        with pytest.raises(Exception):
            Identity(id="", email="u1@example.com")

    def test_external_identity_is_not_local(self):
        assert Identity(id="u1", email="u1@example.com").is_local is False


class TestLocalIdentity:
    def test_local_identity_id(self):
        """Local identities are keyed by normalized email."""
        identity = Identity.local("  Alice@Example.com ")
        assert identity.id == f"{LOCAL_IDENTITY_PREFIX}alice@example.com"
        assert identity.email == "alice@example.com"
        assert identity.is_local is True

    def test_local_identity_display_name_from_email(self):
        """Display name defaults to the email's local part."""
        identity = Identity.local("alice@example.com")
        assert identity.display_name == "alice"

    def test_local_identity_explicit_display_name(self):
        identity = Identity.local("alice@example.com", display_name="Alice")
        assert identity.display_name == "Alice"
