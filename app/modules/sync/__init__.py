"""
Backend sync module.

Request/response adapter to the backend of record: profile upsert and
additive usage increments.

Public API:
- IBackendSync: Interface used by the session engine and quota guard
- InMemoryBackendSync: In-memory backend for tests and offline development
- HttpBackendSync: httpx client for the backend REST contract
- Sync exceptions: NetworkError, ServerError, IdentityConflictError
"""

from .interfaces import IBackendSync
from .exceptions import NetworkError, ServerError, IdentityConflictError
from .service import InMemoryBackendSync, HttpBackendSync, build_backend_sync

__all__ = [
    # Interface
    "IBackendSync",
    # Implementations
    "InMemoryBackendSync",
    "HttpBackendSync",
    "build_backend_sync",
    # Exceptions
    "NetworkError",
    "ServerError",
    "IdentityConflictError",
]
