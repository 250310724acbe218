"""
Backend sync wire models.

Request and response bodies of the backend REST contract (camelCase JSON).
"""

from typing import Optional

from pydantic import Field

from shared.models import WireModel
from modules.session.models import UserProfile


class ProfileRequest(WireModel):
    """Body of POST /profile."""

    identity_id: str = Field(..., description="External identity ID")
    email: str = Field(..., description="Email address")
    display_name: str = Field(default="", description="Display name")


class ProfileResponse(WireModel):
    """Response of POST /profile."""

    profile: UserProfile
    identity_id: Optional[str] = Field(
        None,
        description="Identity the backend has bound to the email, when reported",
    )


class UsageRequest(WireModel):
    """Body of POST /usage."""

    identity_id: str = Field(..., description="External identity ID")
    delta: int = Field(..., gt=0, description="Messages to add")


class UsageResponse(WireModel):
    """Response of POST /usage."""

    messages_used: int = Field(..., ge=0, description="Authoritative usage count")


class ErrorResponse(WireModel):
    """Error body returned with 4xx/5xx responses."""

    error: str = Field(default="", description="Machine-readable error code")
    message: Optional[str] = Field(None, description="Human-readable message")
    identity_id: Optional[str] = Field(None, description="Conflicting identity, if any")
