"""
Tests for the main.py command-line interface.

Each command runs against a fresh SQLite file in tmp_path; the startup
sequence (defaults + trash sweep) runs before every command.
"""
import json
import logging

import openpyxl
import pytest

import main as cli
from storage.entity_store import EntityStore
from storage.keyvalue import SqliteKeyValueStore
from storage.models import Project, Report

_configure_logging = cli.configure_logging


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep the CLI from replacing the root handlers pytest relies on."""
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **kw: None)


@pytest.fixture
def db(tmp_path, monkeypatch):
    path = tmp_path / "tracker.sqlite"
    monkeypatch.setenv("APP_DB_PATH", str(path))
    return path


def _run(db, *argv):
    return cli.main(["--db", str(db), *argv])


class TestCommands:
    def test_startup_prints_steps(self, db, capsys):
        assert _run(db, "startup") == 0
        out = capsys.readouterr().out
        assert "[seed_defaults] completed" in out
        assert "[trash_sweep] completed" in out
        assert db.exists()

    def test_startup_writes_summary(self, db, tmp_path, capsys):
        path = tmp_path / "runs" / "startup.json"
        assert _run(db, "startup", "--summary", str(path)) == 0
        assert "Wrote run summary" in capsys.readouterr().out
        summary = json.loads(path.read_text(encoding="utf-8"))
        assert set(summary["steps"]) == {"seed_defaults", "trash_sweep"}
        assert summary["steps"]["trash_sweep"]["status"] == "completed"

    def test_bad_retention_env_uses_default(self, db, monkeypatch, capsys):
        monkeypatch.setenv("APP_TRASH_RETENTION_DAYS", "thirty")
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).soft_delete_project("proj-welfare-housing")
        capsys.readouterr()
        assert _run(db, "list", "trash") == 0
        assert "purge in 30 day(s)" in capsys.readouterr().out

    def test_list_units_after_first_run(self, db, capsys):
        assert _run(db, "list", "units") == 0
        out = capsys.readouterr().out
        assert "unit-personnel" in out
        assert "Administrator" in out

    def test_list_projects_by_year(self, db, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).save_project(Project(id="old", name="Old", unit_id="admin",
                                                 fiscal_year="2568"))
        capsys.readouterr()
        assert _run(db, "list", "projects", "--year", "2568") == 0
        out = capsys.readouterr().out
        assert "old" in out
        assert "proj-annual-training" not in out

    def test_years(self, db, capsys):
        assert _run(db, "years") == 0
        assert capsys.readouterr().out.split() == ["2569"]

    def test_latest(self, db, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            store = EntityStore(kv)
            store.save_report(Report(id="a", project_id="proj-annual-training",
                                     report_date_end="2026-01-01"))
            store.save_report(Report(id="b", project_id="proj-annual-training",
                                     report_date_end="2026-02-01"))
        capsys.readouterr()
        assert _run(db, "latest", "proj-annual-training") == 0
        assert json.loads(capsys.readouterr().out)["id"] == "b"

    def test_latest_without_reports(self, db, capsys):
        assert _run(db, "latest", "nope") == 1

    def test_list_trash(self, db, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).soft_delete_project("proj-welfare-housing")
        capsys.readouterr()
        assert _run(db, "list", "trash") == 0
        out = capsys.readouterr().out
        assert "proj-welfare-housing" in out
        assert "purge in 30 day(s)" in out

    def test_startup_purges_expired_trash(self, db, capsys):
        _run(db, "startup")
        capsys.readouterr()
        with SqliteKeyValueStore(db) as kv:
            store = EntityStore(kv)
            project = store.get_project("proj-welfare-housing")
            store.save_project(project.model_copy(update={"deleted_at": 0}))
        assert _run(db, "list", "trash") == 0
        assert "proj-welfare-housing" not in capsys.readouterr().out

    def test_check_clean_store(self, db, capsys):
        assert _run(db, "check") == 0
        assert "Errors: 0" in capsys.readouterr().out

    def test_check_reports_orphans(self, db, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).save_report(Report(id="orphan", project_id="gone"))
        assert _run(db, "check") == 1
        assert "report_projects" in capsys.readouterr().out

    def test_check_json(self, db, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).save_report(Report(id="orphan", project_id="gone"))
        capsys.readouterr()
        assert _run(db, "check", "--json") == 1
        result = json.loads(capsys.readouterr().out)
        assert "report_projects" in result["failed_checks"]
        assert result["summary"]["errors"] >= 1
        assert result["issues"][0]["check"] == "report_projects"

    def test_export_reports_xlsx(self, db, tmp_path, capsys):
        _run(db, "startup")
        with SqliteKeyValueStore(db) as kv:
            EntityStore(kv).save_report(Report(id="r1", project_id="proj-annual-training",
                                               unit_id="unit-training"))
        out = tmp_path / "reports.xlsx"
        assert _run(db, "export-reports", "--format", "xlsx", "--out", str(out)) == 0
        wb = openpyxl.load_workbook(out)
        assert wb["Reports"].max_row == 2

    def test_export_reports_csv_for_unit(self, db, tmp_path, capsys):
        out = tmp_path / "reports.csv"
        assert _run(db, "export-reports", "--out", str(out), "--unit", "admin") == 0
        assert "Wrote 0 report(s)" in capsys.readouterr().out

    def test_unopenable_store(self, db, tmp_path):
        # a directory cannot be opened as a SQLite file
        assert cli.main(["--db", str(tmp_path), "years"]) == 1

    def test_command_required(self, db):
        with pytest.raises(SystemExit):
            cli.main(["--db", str(db)])


class TestConfigureLogging:
    @pytest.fixture
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield root
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_format(self, restore_root):
        _configure_logging("json", verbose=True)
        handler = restore_root.handlers[0]
        assert isinstance(handler.formatter, cli._JsonFormatter)
        assert restore_root.level == logging.DEBUG

    def test_json_formatter_output(self):
        record = logging.LogRecord("compliance_tracker", logging.WARNING, __file__, 1,
                                   "purged %d", (2,), None)
        data = json.loads(cli._JsonFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["message"] == "purged 2"
        assert data["logger"] == "compliance_tracker"
