"""Tests for the session cache."""

import json

import pytest

from modules.session.exceptions import CacheCorruptionError
from modules.session.interfaces import ISessionStore
from modules.session.models import Plan, SCHEMA_VERSION
from modules.session.store import FileSessionStore, MemorySessionStore, build_session_store
from shared.config import Settings


class TestMemorySessionStore:
    def test_implements_interface(self, store):
        assert isinstance(store, ISessionStore)

    def test_empty(self, store):
        assert store.get() is None

    def test_set_get(self, store, session_factory, identity):
        session = session_factory(identity, plan=Plan.STANDARD, messages_used=5, pending_delta=2)

        store.set(session)
        loaded = store.get()

        assert loaded == session
        assert loaded.pending_delta == 2

    def test_blob_uses_wire_names(self, store, session_factory, identity):
        store.set(session_factory(identity))
        data = json.loads(store.storage["chatflow_user"])
        assert data["schemaVersion"] == SCHEMA_VERSION
        assert "pendingDelta" in data

    def test_clear(self, store, session_factory, identity):
        store.set(session_factory(identity))
        store.clear()
        assert store.get() is None

    def test_clear_when_empty(self, store):
        store.clear()
        assert store.get() is None

    def test_custom_key(self, session_factory, identity):
        storage = {}
        store = MemorySessionStore(key="other_key", storage=storage)
        store.set(session_factory(identity))
        assert list(storage) == ["other_key"]


class TestCorruption:
    @pytest.mark.parametrize("blob", [
        '{"identity": {"id": "u1", "email": "u1@exa',  # truncated
        "not json at all",
        "[1, 2, 3]",
        '{"identity": {"id": "u1"}}',  # missing fields
        '{"identity": null, "profile": {}}',
    ])
    def test_unreadable_blob_is_absent(self, store, blob, caplog):
        """Anything undecodable is reported as no session and logged."""
        store.storage[store.key] = blob

        assert store.get() is None
        assert "CACHE_CORRUPTION" in caplog.text

    def test_future_schema_version(self, store, session_factory, identity):
        data = json.loads(store.encode(session_factory(identity)))
        data["schemaVersion"] = SCHEMA_VERSION + 1
        store.storage[store.key] = json.dumps(data)

        assert store.get() is None

    def test_decode_raises(self, store):
        with pytest.raises(CacheCorruptionError) as exc_info:
            store.decode("{")
        assert exc_info.value.details["key"] == "chatflow_user"

    def test_missing_schema_version_is_current(self, store, session_factory, identity):
        data = json.loads(store.encode(session_factory(identity)))
        del data["schemaVersion"]
        store.storage[store.key] = json.dumps(data)

        assert store.get().identity_id == "u1"

    def test_missing_profile_fields_defaulted(self, store, identity):
        """Profile fields are optional on the wire and defaulted at decode."""
        store.storage[store.key] = json.dumps({
            "identity": identity.to_wire(),
            "profile": {"plan": "standard"},
        })
        loaded = store.get()
        assert loaded.profile.messages_limit == 2000
        assert loaded.profile.messages_used == 0


class TestFileSessionStore:
    def test_round_trip(self, tmp_path, session_factory, identity):
        store = FileSessionStore(tmp_path / "cache")
        session = session_factory(identity, messages_used=3)

        store.set(session)

        assert store.path == tmp_path / "cache" / "chatflow_user.json"
        assert store.path.exists()
        assert FileSessionStore(tmp_path / "cache").get() == session

    def test_no_temp_file_left(self, tmp_path, session_factory, identity):
        store = FileSessionStore(tmp_path)
        store.set(session_factory(identity))
        assert [p.name for p in tmp_path.iterdir()] == ["chatflow_user.json"]

    def test_missing_file(self, tmp_path):
        assert FileSessionStore(tmp_path / "nowhere").get() is None

    def test_clear(self, tmp_path, session_factory, identity):
        store = FileSessionStore(tmp_path)
        store.set(session_factory(identity))
        store.clear()
        assert not store.path.exists()
        store.clear()

    def test_corrupt_file(self, tmp_path, caplog):
        store = FileSessionStore(tmp_path)
        store.path.write_text("{oops", encoding="utf-8")
        assert store.get() is None
        assert "CACHE_CORRUPTION" in caplog.text

    def test_invalid_utf8_file(self, tmp_path, caplog):
        """A record truncated mid-character reads as absent."""
        store = FileSessionStore(tmp_path)
        store.path.write_bytes(b'{"identity": {"id": "u1", "email": "\xe2\x82')
        assert store.get() is None
        assert "CACHE_CORRUPTION" in caplog.text
        assert "invalid UTF-8" in caplog.text

    def test_build_from_settings(self, tmp_path):
        store = build_session_store(Settings(cache_dir=tmp_path, cache_key="k"))
        assert isinstance(store, FileSessionStore)
        assert store.path == tmp_path / "k.json"
