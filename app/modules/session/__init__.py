"""
Session module.

Owns the canonical "current user": merges identity provider claims, the
backend of record and the local session cache into one Session.

Public API:
- ReconciliationEngine: Session state machine and reconciliation
- ISessionStore / IIdentityProvider: Collaborator interfaces
- SessionStore, MemorySessionStore, FileSessionStore: Session cache
- Session, UserProfile, Plan, AuthEvent, AuthResult, SessionState: Models
- Session exceptions: CacheCorruptionError, NoActiveSessionError, InvalidAuthEventError
"""

from .models import (
    Plan,
    UserProfile,
    Session,
    SessionState,
    AuthEvent,
    AuthEventKind,
    AuthResult,
    SCHEMA_VERSION,
    DEFAULT_PLAN_LIMITS,
)
from .exceptions import (
    SessionError,
    CacheCorruptionError,
    NoActiveSessionError,
    InvalidAuthEventError,
)
from .interfaces import ISessionStore, IIdentityProvider
from .store import SessionStore, MemorySessionStore, FileSessionStore, build_session_store
from .engine import ReconciliationEngine, parse_auth_notification

__all__ = [
    # Interfaces
    "ISessionStore",
    "IIdentityProvider",
    # Models
    "Plan",
    "UserProfile",
    "Session",
    "SessionState",
    "AuthEvent",
    "AuthEventKind",
    "AuthResult",
    "SCHEMA_VERSION",
    "DEFAULT_PLAN_LIMITS",
    # Exceptions
    "SessionError",
    "CacheCorruptionError",
    "NoActiveSessionError",
    "InvalidAuthEventError",
    # Cache
    "SessionStore",
    "MemorySessionStore",
    "FileSessionStore",
    "build_session_store",
    # Engine
    "ReconciliationEngine",
    "parse_auth_notification",
]
