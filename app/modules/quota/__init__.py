"""
Quota module.

Enforces per-plan message limits and records usage against the canonical
session, keeping unconfirmed increments as pending usage.

Public API:
- QuotaGuard: can_proceed / check / record_usage
- QuotaPolicy: Total plan -> limit mapping
- QuotaStatus: Result of a quota check
"""

from .policy import QuotaPolicy
from .models import QuotaStatus
from .exceptions import InvalidQuotaPolicyError
from .guard import QuotaGuard

__all__ = [
    "QuotaGuard",
    "QuotaPolicy",
    "QuotaStatus",
    "InvalidQuotaPolicyError",
]
