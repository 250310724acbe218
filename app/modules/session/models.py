"""
Session module data models.

These models define the canonical session shape shared by the engine,
the quota guard, the session cache and the backend sync client.
Defaults are applied here, at the construction/deserialization boundary,
so use sites never need to fall back on missing fields.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from shared.models import Identity, WireModel

logger = logging.getLogger(__name__)


SCHEMA_VERSION = 1


class Plan(str, Enum):
    """Subscription plans."""

    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: Any) -> "Plan":
        """Resolve any raw plan value; unknown or missing plans resolve to free."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if value is not None:
                logger.warning(f"Unknown plan {value!r}, treating as free")
            return cls.FREE


# Limits used when a profile arrives without one
DEFAULT_PLAN_LIMITS: dict[Plan, int] = {
    Plan.FREE: 20,
    Plan.STANDARD: 2000,
    Plan.PREMIUM: 10000,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(WireModel):
    """
    Plan and usage data for a user, as known to the backend of record.
    """

    plan: Plan = Field(default=Plan.FREE, description="Subscription plan")
    messages_used: int = Field(default=0, ge=0, description="Messages used this period")
    messages_limit: int = Field(default=0, description="Message limit for the plan")
    created_at: datetime = Field(default_factory=_utcnow, description="Account creation time")
    last_login: datetime = Field(default_factory=_utcnow, description="Last sign-in time")

    @field_validator("plan", mode="before")
    @classmethod
    def default_plan(cls, value: Any) -> Plan:
        return Plan.parse(value)

    @field_validator("messages_used", "messages_limit", mode="before")
    @classmethod
    def default_counters(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("created_at", "last_login", mode="before")
    @classmethod
    def default_timestamps(cls, value: Any) -> Any:
        return _utcnow() if value is None else value

    @model_validator(mode="after")
    def derive_limit(self) -> "UserProfile":
        """Derive the limit from the plan when none (or a non-positive one) was given."""
        if self.messages_limit <= 0:
            object.__setattr__(self, "messages_limit", DEFAULT_PLAN_LIMITS[self.plan])
        return self

    @classmethod
    def default(cls, limit: Optional[int] = None) -> "UserProfile":
        """A fresh free-plan profile, used when nothing better is known."""
        return cls(plan=Plan.FREE, messages_used=0, messages_limit=limit or 0)


class Session(WireModel):
    """
    The canonical representation of the currently authenticated user.

    Immutable: every transition builds a new Session, so replacing the
    canonical one is a single reference swap.
    """

    identity: Identity
    profile: UserProfile
    degraded: bool = Field(default=False, description="Built from cached/incomplete data")
    pending_delta: int = Field(default=0, ge=0, description="Usage not yet confirmed by the backend")
    schema_version: int = Field(default=SCHEMA_VERSION, description="Cache format version")

    @property
    def identity_id(self) -> str:
        return self.identity.id

    @property
    def confirmed_messages_used(self) -> int:
        """Usage the backend has acknowledged."""
        return self.profile.messages_used - self.pending_delta

    def with_usage(self, messages_used: int, pending_delta: int) -> "Session":
        """Copy with new usage counters; messages_used never goes backwards."""
        profile = self.profile.model_copy(
            update={"messages_used": max(messages_used, self.profile.messages_used)}
        )
        return self.model_copy(update={"profile": profile, "pending_delta": pending_delta})


class SessionState(str, Enum):
    """Engine state machine."""

    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    RECONCILED = "reconciled"
    DEGRADED = "degraded"


class AuthEventKind(str, Enum):
    """Notifications emitted by the identity provider."""

    AUTHENTICATED = "authenticated"
    SIGNED_OUT = "signedOut"


class AuthEvent(WireModel):
    """An identity provider notification."""

    kind: AuthEventKind
    identity: Optional[Identity] = None

    @model_validator(mode="after")
    def require_identity(self) -> "AuthEvent":
        if self.kind == AuthEventKind.AUTHENTICATED and self.identity is None:
            raise ValueError("authenticated events must carry an identity")
        return self

    @classmethod
    def authenticated(cls, identity: Identity) -> "AuthEvent":
        return cls(kind=AuthEventKind.AUTHENTICATED, identity=identity)

    @classmethod
    def signed_out(cls) -> "AuthEvent":
        return cls(kind=AuthEventKind.SIGNED_OUT)


class AuthResult(WireModel):
    """Outcome of a user-initiated sign-in or sign-out."""

    success: bool
    reason: Optional[str] = None
    session: Optional[Session] = None
