"""
Quota module exceptions.

Running out of quota is not an exception (see QuotaStatus); these cover
misconfiguration only.
"""

from shared.exceptions import ValidationError


class InvalidQuotaPolicyError(ValidationError):
    """Raised when a quota policy is configured with unknown plans or bad limits."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_QUOTA_POLICY")
