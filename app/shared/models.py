"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


LOCAL_IDENTITY_PREFIX = "local:"


class WireModel(BaseModel):
    """
    Base for models that cross a JSON boundary (backend API, session cache).

    Fields are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,  # Make immutable for safety
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-compatible dict using wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)


class Identity(WireModel):
    """
    An identity claim asserted by the identity provider.

    Immutable once established for a sign-in.
    """

    id: str = Field(..., min_length=1, description="External identity ID")
    email: str = Field(..., min_length=3, description="User's email address")
    display_name: str = Field(default="", description="Display name")

    @property
    def is_local(self) -> bool:
        """True for email-only identities created by local login."""
        return self.id.startswith(LOCAL_IDENTITY_PREFIX)

    @classmethod
    def local(cls, email: str, display_name: str = "") -> "Identity":
        """Build a local email-only identity."""
        email = email.strip().lower()
        name = display_name or email.split("@")[0] or "User"
        return cls(id=f"{LOCAL_IDENTITY_PREFIX}{email}", email=email, display_name=name)
