"""
Tests for storage/keyvalue.py

Both backends must behave the same for get/set/set_many; the
SQLite backend must also persist across connections and roll back a failed
batch.
"""
import sqlite3
from unittest.mock import patch

import pytest

from storage.keyvalue import KV_TABLE, MemoryKeyValueStore, SqliteKeyValueStore
from utils.database import table_exists


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        kv = MemoryKeyValueStore()
    else:
        kv = SqliteKeyValueStore(tmp_path / "kv.sqlite")
    yield kv
    kv.close()


class TestBackendContract:
    def test_absent_key_is_none(self, backend):
        assert backend.get("missing") is None

    def test_set_then_get(self, backend):
        backend.set("k", "[1, 2]")
        assert backend.get("k") == "[1, 2]"

    def test_overwrite(self, backend):
        backend.set("k", "old")
        backend.set("k", "new")
        assert backend.get("k") == "new"

    def test_set_many(self, backend):
        backend.set_many([("a", "1"), ("b", "2")])
        assert backend.get("a") == "1"
        assert backend.get("b") == "2"

    def test_empty_string_value_is_present(self, backend):
        backend.set("k", "")
        assert backend.get("k") == ""


class TestMemoryKeyValueStore:
    def test_history_records_write_order(self):
        kv = MemoryKeyValueStore()
        kv.set("x", "1")
        kv.set_many([("a", "1"), ("b", "2")])
        assert kv.history == ["x", "a", "b"]

    def test_initial_and_snapshot(self):
        kv = MemoryKeyValueStore({"k": "v"})
        snap = kv.snapshot()
        snap["k"] = "changed"
        assert kv.get("k") == "v"


class TestSqliteKeyValueStore:
    def test_creates_table(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "s.sqlite") as kv:
            assert table_exists(kv._conn, KV_TABLE)

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "s.sqlite"
        with SqliteKeyValueStore(path) as kv:
            kv.set("k", "v")
        assert path.exists()

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "s.sqlite"
        with SqliteKeyValueStore(path) as kv:
            kv.set("k", "persisted")
        with SqliteKeyValueStore(path) as kv:
            assert kv.get("k") == "persisted"

    def test_one_row_per_key(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "s.sqlite") as kv:
            kv.set("k", "1")
            kv.set("k", "2")
            count = kv._conn.execute(f"SELECT COUNT(*) FROM {KV_TABLE}").fetchone()[0]
            assert count == 1

    def test_failed_batch_is_rolled_back(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "s.sqlite") as kv:
            kv.set("a", "before")
            # second row violates NOT NULL after the first was already applied
            with pytest.raises(sqlite3.IntegrityError):
                kv.set_many([("a", "after"), ("b", None)])
            assert kv.get("a") == "before"
            assert kv.get("b") is None

    def test_sqlite_error_propagates(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "s.sqlite") as kv:
            with pytest.raises(sqlite3.Error):
                kv.set_many([("k", None)])  # value column is NOT NULL
            assert kv.get("k") is None

    def test_updated_at_uses_wall_clock(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "s.sqlite") as kv:
            with patch("storage.keyvalue.time.time", return_value=1234.5):
                kv.set("k", "v")
            row = kv._conn.execute(
                f"SELECT updated_at FROM {KV_TABLE} WHERE key='k'").fetchone()
            assert row["updated_at"] == 1234.5
