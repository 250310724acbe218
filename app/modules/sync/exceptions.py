"""
Backend sync module exceptions.

These exceptions are raised by BackendSync implementations and interpreted
by the session engine: transient ones are retried and then degrade the
session, the rest are surfaced as structured failures.
"""

from typing import Optional

from shared.exceptions import AuthenticationError, ExternalServiceError


BACKEND_SERVICE = "backend"


class NetworkError(ExternalServiceError):
    """Raised on a transport failure (connection refused, timeout, DNS...)."""

    def __init__(self, message: str = "Backend unreachable"):
        super().__init__(message, service=BACKEND_SERVICE, code="NETWORK_ERROR")

    @property
    def transient(self) -> bool:
        return True


class ServerError(ExternalServiceError):
    """Raised when the backend answers with a 4xx/5xx or an unreadable body."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(
            message or f"Backend returned HTTP {status_code}",
            service=BACKEND_SERVICE,
            code="SERVER_ERROR",
            details={"status_code": status_code},
        )
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        return self.status_code >= 500


class IdentityConflictError(AuthenticationError):
    """Raised when the backend has the email bound to a different identity."""

    def __init__(self, email: str, identity_id: str, existing_id: Optional[str] = None):
        details = {"email": email, "identity_id": identity_id}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(
            f"Email {email} is already bound to a different identity",
            code="IDENTITY_CONFLICT",
            details=details,
        )
