"""
Tests for the persistence adapter and its storage backends.
"""

import json
import threading

import pytest

from core import PersistenceAdapter, JsonFileStorage, MemoryStorage
from core.persistence import SCHEMA_VERSION


class BrokenStorage:
    """Storage whose every operation fails like a full or read-only disk."""

    def read(self, key):
        raise OSError("disk unavailable")

    def write(self, key, value):
        raise OSError("disk unavailable")


class SlowStorage(MemoryStorage):
    """Records write order; each write waits for a gate."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()
        self.written = []

    def write(self, key, value):
        self.gate.wait(2)
        self.written.append(json.loads(value)["n"])
        super().write(key, value)


class TestAdapter:

    def test_round_trip(self):
        adapter = PersistenceAdapter(MemoryStorage(), "chat-storage")
        record = {"sessions": [{"id": "a", "name": "Chat 1", "messages": []}], "currentSessionId": "a", "messages": []}

        adapter.save(record)
        loaded = adapter.load()

        assert loaded["sessions"] == record["sessions"]
        assert loaded["currentSessionId"] == "a"
        assert loaded["version"] == SCHEMA_VERSION

    def test_load_absent(self):
        assert PersistenceAdapter(MemoryStorage(), "chat-storage").load() is None

    def test_keys_are_independent(self):
        storage = MemoryStorage()
        PersistenceAdapter(storage, "chat-storage").save({"sessions": []})
        PersistenceAdapter(storage, "theme-storage").save({"isDarkMode": True})

        assert PersistenceAdapter(storage, "chat-storage").load()["sessions"] == []
        assert PersistenceAdapter(storage, "theme-storage").load()["isDarkMode"] is True

    def test_corrupt_record_reads_as_absent(self):
        storage = MemoryStorage()
        storage.write("chat-storage", "{not json")
        assert PersistenceAdapter(storage, "chat-storage").load() is None

    def test_non_object_record_reads_as_absent(self):
        storage = MemoryStorage()
        storage.write("chat-storage", "[1, 2, 3]")
        assert PersistenceAdapter(storage, "chat-storage").load() is None

    def test_unversioned_record_is_accepted(self):
        storage = MemoryStorage()
        storage.write("chat-storage", json.dumps({"sessions": [], "currentSessionId": None}))
        assert PersistenceAdapter(storage, "chat-storage").load() == {"sessions": [], "currentSessionId": None}

    def test_newer_schema_is_ignored(self):
        storage = MemoryStorage()
        storage.write("chat-storage", json.dumps({"version": SCHEMA_VERSION + 1, "sessions": []}))
        assert PersistenceAdapter(storage, "chat-storage").load() is None

    def test_storage_errors_fail_open(self):
        adapter = PersistenceAdapter(BrokenStorage(), "chat-storage")
        adapter.save({"sessions": []})  # must not raise
        assert adapter.load() is None

    def test_unserializable_record_is_swallowed(self):
        adapter = PersistenceAdapter(MemoryStorage(), "chat-storage")
        adapter.save({"bad": object()})
        assert adapter.load() is None


class TestBackgroundWrites:

    def test_save_does_not_block_and_keeps_order(self):
        storage = SlowStorage()
        adapter = PersistenceAdapter(storage, "chat-storage", background=True)
        try:
            for n in range(5):
                adapter.save({"n": n})  # returns while the writer is gated
            assert storage.written == []

            storage.gate.set()
            adapter.flush()

            assert storage.written == [0, 1, 2, 3, 4]
            assert adapter.load()["n"] == 4
        finally:
            adapter.close()

    def test_save_after_close_is_dropped(self):
        adapter = PersistenceAdapter(MemoryStorage(), "chat-storage", background=True)
        adapter.close()
        adapter.save({"n": 1})
        adapter.flush()
        assert adapter.load() is None


class TestJsonFileStorage:

    def test_writes_one_file_per_key(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "state")
        adapter = PersistenceAdapter(storage, "chat-storage")
        adapter.save({"sessions": [], "currentSessionId": None})

        path = tmp_path / "state" / "chat-storage.json"
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["currentSessionId"] is None
        # No temporary files left behind
        assert [p.name for p in (tmp_path / "state").iterdir()] == ["chat-storage.json"]

    def test_survives_new_instance(self, tmp_path):
        PersistenceAdapter(JsonFileStorage(tmp_path), "theme-storage").save({"isDarkMode": True})
        loaded = PersistenceAdapter(JsonFileStorage(tmp_path), "theme-storage").load()
        assert loaded["isDarkMode"] is True

    def test_missing_file_reads_as_none(self, tmp_path):
        assert JsonFileStorage(tmp_path).read("chat-storage") is None

    def test_unicode_content(self, tmp_path):
        adapter = PersistenceAdapter(JsonFileStorage(tmp_path), "chat-storage")
        adapter.save({"sessions": [{"id": "a", "name": "Café ☕", "messages": []}]})
        assert adapter.load()["sessions"][0]["name"] == "Café ☕"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
