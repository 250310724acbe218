"""
Plan-based quota policy.

A total mapping from plan to message limit: every plan, known or not,
resolves to a positive limit, and unknown plans get the free limit.
"""

from typing import Mapping, Optional, Union

from shared.config import Settings, get_settings
from modules.session.models import DEFAULT_PLAN_LIMITS, Plan

from .exceptions import InvalidQuotaPolicyError


PlanLike = Union[Plan, str, None]


class QuotaPolicy:
    """Message limits per plan."""

    def __init__(self, limits: Optional[Mapping[PlanLike, int]] = None):
        """
        Initialize the policy.

        Args:
            limits: Overrides keyed by plan; plans left out keep their default.
                    Keys that are not known plans are rejected.
        """
        resolved = dict(DEFAULT_PLAN_LIMITS)
        for key, value in (limits or {}).items():
            try:
                plan = key if isinstance(key, Plan) else Plan(str(key).lower())
            except ValueError:
                raise InvalidQuotaPolicyError(f"Unknown plan in quota policy: {key!r}") from None
            if not isinstance(value, int) or value <= 0:
                raise InvalidQuotaPolicyError(f"Limit for {plan.value} must be a positive integer")
            resolved[plan] = value
        self._limits = resolved

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QuotaPolicy":
        settings = settings or get_settings()
        return cls({
            Plan.FREE: settings.plan_limit_free,
            Plan.STANDARD: settings.plan_limit_standard,
            Plan.PREMIUM: settings.plan_limit_premium,
        })

    @property
    def free_limit(self) -> int:
        return self._limits[Plan.FREE]

    def limit(self, plan: PlanLike) -> int:
        """Limit for a plan; unknown or missing plans resolve to the free limit."""
        return self._limits.get(Plan.parse(plan), self.free_limit)

    def as_dict(self) -> dict[str, int]:
        return {plan.value: limit for plan, limit in self._limits.items()}
