"""
Session cache implementations.

The cache holds a single JSON blob under a well-known key. Reading is
deliberately forgiving: anything that cannot be decoded into a current
Session is logged as cache corruption and reported as absent.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings, get_settings

from .exceptions import CacheCorruptionError
from .models import SCHEMA_VERSION, Session

logger = logging.getLogger(__name__)


DEFAULT_CACHE_KEY = "chatflow_user"


class SessionStore:
    """
    Base session cache: encoding, decoding and corruption handling.

    Subclasses provide raw storage through _read, _write and _delete.
    """

    def __init__(self, key: str = DEFAULT_CACHE_KEY):
        self.key = key

    # ---- raw storage ----
    def _read(self) -> Optional[Union[str, bytes]]:
        raise NotImplementedError

    def _write(self, blob: str) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError

    # ---- codec ----
    def encode(self, session: Session) -> str:
        return session.model_dump_json(by_alias=True)

    def decode(self, blob: Union[str, bytes]) -> Session:
        """
        Decode a cached blob.

        Raises:
            CacheCorruptionError: If the blob is not a readable current-version Session
                (invalid UTF-8 included)
        """
        try:
            data = json.loads(blob)
        except UnicodeDecodeError as e:
            raise CacheCorruptionError(self.key, f"invalid UTF-8 ({e.reason} at byte {e.start})") from e
        except ValueError as e:
            raise CacheCorruptionError(self.key, f"invalid JSON ({e})") from e
        if not isinstance(data, dict):
            raise CacheCorruptionError(self.key, "record is not an object")

        version = data.get("schemaVersion", SCHEMA_VERSION)
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            raise CacheCorruptionError(self.key, f"unsupported schemaVersion {version!r}")

        try:
            return Session.model_validate(data)
        except PydanticValidationError as e:
            raise CacheCorruptionError(
                self.key, f"{e.error_count()} invalid field(s)"
            ) from e

    # ---- public API ----
    def get(self) -> Optional[Session]:
        """Return the cached session, or None if absent or unreadable."""
        try:
            blob = self._read()
        except OSError as e:
            logger.warning(f"Session cache {self.key!r} could not be read: {e}")
            return None
        if blob is None:
            return None
        try:
            return self.decode(blob)
        except CacheCorruptionError as e:
            logger.warning(f"{e.code}: {e.message}; treating cache as empty")
            return None

    def set(self, session: Session) -> None:
        self._write(self.encode(session))

    def clear(self) -> None:
        self._delete()


class MemorySessionStore(SessionStore):
    """
    Session cache backed by a dict.

    For testing. The dict stands in for browser-style key/value storage;
    tests may write raw strings into it to simulate corruption.
    """

    def __init__(self, key: str = DEFAULT_CACHE_KEY, storage: Optional[dict[str, str]] = None):
        super().__init__(key)
        self.storage = storage if storage is not None else {}

    def _read(self) -> Optional[str]:
        return self.storage.get(self.key)

    def _write(self, blob: str) -> None:
        self.storage[self.key] = blob

    def _delete(self) -> None:
        self.storage.pop(self.key, None)


class FileSessionStore(SessionStore):
    """
    Session cache persisted as `<directory>/<key>.json`.

    Writes go through a temporary file and an atomic rename, so a crash
    mid-write leaves either the old record or the new one.
    """

    def __init__(self, directory: Path, key: str = DEFAULT_CACHE_KEY):
        super().__init__(key)
        self.directory = Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def _read(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        return self.path.read_bytes()

    def _write(self, blob: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(blob, encoding="utf-8")
        os.replace(tmp, self.path)

    def _delete(self) -> None:
        self.path.unlink(missing_ok=True)


def build_session_store(settings: Optional[Settings] = None) -> SessionStore:
    """Create the file-backed session cache from settings."""
    settings = settings or get_settings()
    return FileSessionStore(settings.cache_dir, key=settings.cache_key)
