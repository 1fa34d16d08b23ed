"""
Read-only views derived from the entity store.

Every helper reads fresh snapshots and recomputes its answer; nothing is
cached between calls.
"""

from __future__ import annotations

from datetime import datetime, timezone

from storage.entity_store import EntityStore
from storage.models import Project, ProjectGroup, Report
from utils.config import BuiltInDefaults


def _end_date_key(report: Report) -> float:
    """Sort key for a report's end date; unparseable dates sort last."""
    value = report.end_date
    if not value or not isinstance(value, str):
        return float("-inf")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def reports_for_project(store: EntityStore, project_id: str) -> list[Report]:
    return [r for r in store.list_reports() if r.project_id == project_id]


def latest_report(store: EntityStore, project_id: str) -> Report | None:
    """Most recent report for a project by end date, or None."""
    reports = sorted(reports_for_project(store, project_id),
                     key=_end_date_key, reverse=True)
    return reports[0] if reports else None


def reports_for_unit(store: EntityStore, unit_id: str) -> list[Report]:
    """Reports currently attributed to a unit."""
    return [r for r in store.list_reports() if r.unit_id == unit_id]


def active_projects(store: EntityStore, fiscal_year: str | None = None) -> list[Project]:
    """Projects not in the trash, optionally limited to one fiscal year."""
    projects = [p for p in store.list_projects() if not p.is_deleted]
    if fiscal_year is not None:
        projects = [p for p in projects if p.effective_fiscal_year == fiscal_year]
    return projects


def trashed_projects(store: EntityStore) -> list[Project]:
    return [p for p in store.list_projects() if p.is_deleted]


def available_fiscal_years(store: EntityStore) -> list[str]:
    """Distinct fiscal years of active projects, newest first.

    Always returns at least the default year so a year picker is never empty.
    """
    years = sorted({p.effective_fiscal_year for p in active_projects(store)}, reverse=True)
    return years or [BuiltInDefaults.FISCAL_YEAR]


def projects_by_group(store: EntityStore,
                      fiscal_year: str | None = None) -> list[tuple[ProjectGroup, list[Project]]]:
    """Active projects bucketed by group, in group order.

    Groups without any active project are left out, as are projects with no
    group (or a group that no longer exists).
    """
    projects = active_projects(store, fiscal_year)
    grouped = []
    for group in store.list_groups():
        members = [p for p in projects if p.group_id == group.id]
        if members:
            grouped.append((group, members))
    return grouped
