"""
Quota module data models.
"""

from pydantic import BaseModel, Field

from modules.session.models import Plan


class QuotaStatus(BaseModel):
    """
    Result of a quota check.

    A disallowed status is the normal "quota exceeded" outcome, not an error.
    """

    allowed: bool = Field(..., description="Whether another message may be sent")
    plan: Plan = Field(..., description="Plan the limit was resolved for")
    used: int = Field(..., ge=0, description="Messages used, pending ones included")
    limit: int = Field(..., gt=0, description="Plan limit")
    pending: int = Field(default=0, ge=0, description="Messages not yet confirmed by the backend")
    degraded: bool = Field(default=False, description="Checked against cached data")

    model_config = {"frozen": True}

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def exceeded(self) -> bool:
        return not self.allowed
