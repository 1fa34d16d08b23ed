#!/usr/bin/env python3
"""
Unit Compliance Tracker: command-line access to the local store.

Every invocation runs the startup sequence first (seed first-run defaults,
purge projects that sat in the trash past the retention window).

Usage:
    python main.py startup                      # run startup only, print step summaries
    python main.py startup --summary run.json   # also write the step reports as JSON
    python main.py list projects --year 2569
    python main.py list reports --unit unit-personnel
    python main.py list trash                   # soft-deleted projects + days left
    python main.py years                        # fiscal years for the year picker
    python main.py latest proj-annual-training  # latest report for a project
    python main.py check                        # integrity checks
    python main.py check --json                 # integrity result as JSON
    python main.py export-reports --format xlsx --out reports.xlsx
    python main.py --db /path/to/tracker.sqlite list units
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import sys
from pathlib import Path

from storage import queries
from storage.entity_store import EntityStore
from storage.integrity import check_integrity
from storage.reclamation import days_until_purge
from storage.sheets import write_reports_csv, write_reports_xlsx
from storage.startup import open_store, run_startup
from utils.common import format_timestamp_ms
from utils.config import StoreConfig

_logger = logging.getLogger("compliance_tracker")


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def configure_logging(log_format: str = "text", verbose: bool = False) -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler],
                        level=logging.DEBUG if verbose else logging.INFO,
                        force=True)


# ── Commands ──────────────────────────────────────────────────────────────────

def _cmd_startup(store: EntityStore, args: argparse.Namespace) -> int:
    for name, report in args.step_log.get_reports().items():
        print(f"  [{name}] {report.status}: {report.console_summary()}")
    if args.summary is not None:
        print(f"Wrote run summary to {args.step_log.write_summary(args.summary)}")
    return 0


def _cmd_list(store: EntityStore, args: argparse.Namespace) -> int:
    kind = args.kind
    if kind == "units":
        for unit in store.list_units():
            print(f"{unit.id:<24} {unit.name}")
    elif kind == "groups":
        for group in store.list_groups():
            print(f"{group.id:<24} {group.name}")
    elif kind == "projects":
        for project in queries.active_projects(store, args.year):
            print(f"{project.id:<24} {project.effective_fiscal_year}  "
                  f"{project.unit_id:<20} {project.name}")
    elif kind == "trash":
        now = store.now_ms()
        for project in queries.trashed_projects(store):
            print(f"{project.id:<24} deleted {format_timestamp_ms(project.deleted_at)}  "
                  f"purge in {days_until_purge(project, now, args.retention_days)} day(s)  "
                  f"{project.name}")
    else:
        reports = (queries.reports_for_unit(store, args.unit)
                   if args.unit else store.list_reports())
        for report in reports:
            print(f"{report.id:<24} {report.end_date or '-':<26} {report.status:<8} "
                  f"{report.progress:>5}%  {report.unit_name} / {report.project_name}")
    return 0


def _cmd_years(store: EntityStore, args: argparse.Namespace) -> int:
    print("\n".join(queries.available_fiscal_years(store)))
    return 0


def _cmd_latest(store: EntityStore, args: argparse.Namespace) -> int:
    report = queries.latest_report(store, args.project_id)
    if report is None:
        print(f"No reports for project {args.project_id}")
        return 1
    print(json.dumps(report.to_wire(), indent=2, ensure_ascii=False))
    return 0


def _cmd_check(store: EntityStore, args: argparse.Namespace) -> int:
    result = check_integrity(store)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 0 if result.is_valid() else 1
    print(result.summary_text())
    for issue in result.issues:
        print(f"  {issue.severity.upper():<8} {issue.check_name}: {issue.detail} "
              f"(count={issue.count}, e.g. {issue.sample})")
    return 0 if result.is_valid() else 1


def _cmd_export_reports(store: EntityStore, args: argparse.Namespace) -> int:
    out = args.out or Path(f"reports.{args.format}")
    if args.format == "xlsx":
        count = write_reports_xlsx(store, out, unit_id=args.unit)
    else:
        count = write_reports_csv(store, out, unit_id=args.unit)
    print(f"Wrote {count} report(s) to {out}")
    return 0


def _build_parser(cfg: StoreConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and maintain the unit compliance tracker store.",
    )
    parser.add_argument(
        "--db", type=Path, default=None,
        help="Path to SQLite store (default: compliance_tracker.sqlite or APP_DB_PATH env var)",
    )
    parser.add_argument(
        "--retention-days", type=int, default=cfg.trash_retention_days,
        help="Days a soft-deleted project stays in the trash (default: 30)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_startup = sub.add_parser("startup", help="Seed defaults and sweep the trash")
    p_startup.add_argument("--summary", type=Path, default=None,
                           help="Write the step reports to this JSON file")
    p_startup.set_defaults(func=_cmd_startup)

    p_list = sub.add_parser("list", help="List a collection")
    p_list.add_argument("kind", choices=["units", "projects", "reports", "groups", "trash"])
    p_list.add_argument("--unit", default=None, help="Only reports of this unit")
    p_list.add_argument("--year", default=None, help="Only projects of this fiscal year")
    p_list.set_defaults(func=_cmd_list)

    sub.add_parser("years", help="Fiscal years of active projects").set_defaults(func=_cmd_years)

    p_latest = sub.add_parser("latest", help="Latest report for a project")
    p_latest.add_argument("project_id")
    p_latest.set_defaults(func=_cmd_latest)

    p_check = sub.add_parser("check", help="Run integrity checks")
    p_check.add_argument("--json", action="store_true", help="Print the result as JSON")
    p_check.set_defaults(func=_cmd_check)

    p_export = sub.add_parser("export-reports", help="Export reports as CSV or Excel")
    p_export.add_argument("--format", choices=["csv", "xlsx"], default="csv")
    p_export.add_argument("--out", type=Path, default=None)
    p_export.add_argument("--unit", default=None, help="Only reports of this unit")
    p_export.set_defaults(func=_cmd_export_reports)
    return parser


def main(argv: list[str] | None = None) -> int:
    cfg = StoreConfig.from_env()
    args = _build_parser(cfg).parse_args(argv)
    configure_logging(cfg.log_format, args.verbose)

    # Set DB path env var if provided via CLI
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)
        cfg = StoreConfig.from_env()

    try:
        store = open_store(cfg)
    except (OSError, sqlite3.Error) as exc:
        _logger.error("Cannot open store %s: %s", cfg.db_path, exc)
        return 1
    try:
        args.step_log = run_startup(store, retention_days=args.retention_days)
        return args.func(store, args)
    finally:
        store.kv.close()


if __name__ == "__main__":
    sys.exit(main())
