"""
Tests for storage/startup.py
"""
from unittest.mock import patch

import pytest

from storage.entity_store import EntityStore
from storage.keyvalue import SqliteKeyValueStore
from storage.startup import open_store, run_startup
from utils.config import StoreConfig
from utils.steps import StepLog

from conftest import DAY_MS, NOW_MS


class TestRunStartup:
    def test_first_run_seeds_and_sweeps(self, store):
        log = run_startup(store, retention_days=30)
        reports = log.get_reports()
        assert list(reports) == ["seed_defaults", "trash_sweep"]
        assert reports["seed_defaults"].items_processed == 2
        assert reports["seed_defaults"].status == "completed"
        assert reports["trash_sweep"].status == "completed"

    def test_second_run_seeds_nothing(self, store):
        run_startup(store, retention_days=30)
        seed = run_startup(store, retention_days=30).get_reports()["seed_defaults"]
        assert seed.items_processed == 0
        assert seed.skip_counts_by_category() == {"already_done": 2}

    def test_sweeps_expired_trash(self, scenario_store):
        p2 = scenario_store.get_project("P2")
        scenario_store.save_project(p2.model_copy(update={"deleted_at": NOW_MS - 31 * DAY_MS}))
        log = run_startup(scenario_store, retention_days=30)
        assert scenario_store.get_project("P2") is None
        assert log.get_reports()["trash_sweep"].metrics["projects_purged"] == 1

    def test_retention_from_environment(self, scenario_store, monkeypatch):
        monkeypatch.setenv("APP_TRASH_RETENTION_DAYS", "5")
        p2 = scenario_store.get_project("P2")
        scenario_store.save_project(p2.model_copy(update={"deleted_at": NOW_MS - 6 * DAY_MS}))
        run_startup(scenario_store)
        assert scenario_store.get_project("P2") is None

    def test_uses_given_step_log(self, store):
        log = StepLog()
        assert run_startup(store, retention_days=30, step_log=log) is log

    def test_failure_is_recorded_and_raised(self, store):
        log = StepLog()
        with patch.object(store, "initialize_defaults", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                run_startup(store, retention_days=30, step_log=log)
        seed = log.get_reports()["seed_defaults"]
        assert seed.status == "failed"
        assert seed.errors == ["disk full"]
        assert "trash_sweep" not in log.get_reports()


class TestOpenStore:
    def test_opens_sqlite_file(self, tmp_path):
        cfg = StoreConfig()
        cfg.db_path = tmp_path / "data" / "tracker.sqlite"
        store = open_store(cfg)
        try:
            assert isinstance(store, EntityStore)
            assert isinstance(store.kv, SqliteKeyValueStore)
            run_startup(store, retention_days=30)
        finally:
            store.kv.close()
        assert cfg.db_path.exists()

    def test_defaults_to_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("APP_DB_PATH", str(tmp_path / "env.sqlite"))
        store = open_store()
        try:
            assert store.kv.db_path == tmp_path / "env.sqlite"
        finally:
            store.kv.close()
