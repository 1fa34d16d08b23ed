"""
Diagnostic integrity checks over a store.

The store prevents dangling references by cascading on delete; these checks
only report what they find (for example in data restored from an old backup
or written by another process).  Nothing is repaired.
"""

from typing import List

from storage.entity_store import EntityStore
from utils.validation import (
    ValidationIssue,
    ValidationRegistry,
    ValidationResult,
    is_valid_fiscal_year,
    is_valid_progress,
)


def check_report_projects(store: EntityStore) -> List[ValidationIssue]:
    """Reports whose project no longer exists."""
    project_ids = {p.id for p in store.list_projects()}
    orphans = [r.id for r in store.list_reports() if r.project_id not in project_ids]
    if not orphans:
        return []
    return [ValidationIssue("report_projects", "error",
                            "Reports reference a missing project",
                            sample=orphans[0], count=len(orphans))]


def check_project_units(store: EntityStore) -> List[ValidationIssue]:
    """Projects whose owning unit no longer exists."""
    unit_ids = {u.id for u in store.list_units()}
    orphans = [p.id for p in store.list_projects() if p.unit_id not in unit_ids]
    if not orphans:
        return []
    return [ValidationIssue("project_units", "error",
                            "Projects reference a missing unit",
                            sample=orphans[0], count=len(orphans))]


def check_report_denormalization(store: EntityStore) -> List[ValidationIssue]:
    """Reports whose copied project name or unit differs from the project."""
    projects = {p.id: p for p in store.list_projects()}
    stale = [
        r.id for r in store.list_reports()
        if r.project_id in projects
        and (r.project_name != projects[r.project_id].name
             or r.unit_id != projects[r.project_id].unit_id)
    ]
    if not stale:
        return []
    return [ValidationIssue("report_denormalization", "warning",
                            "Reports carry a stale project name or unit",
                            sample=stale[0], count=len(stale))]


def check_project_groups(store: EntityStore) -> List[ValidationIssue]:
    """Projects pointing at a group that does not exist."""
    group_ids = {g.id for g in store.list_groups()}
    orphans = [p.id for p in store.list_projects()
               if p.group_id is not None and p.group_id not in group_ids]
    if not orphans:
        return []
    return [ValidationIssue("project_groups", "warning",
                            "Projects reference a missing group",
                            sample=orphans[0], count=len(orphans))]


def check_value_ranges(store: EntityStore) -> List[ValidationIssue]:
    """Report progress outside 0-100 and malformed fiscal years."""
    issues = []
    bad_progress = [r.id for r in store.list_reports() if not is_valid_progress(r.progress)]
    if bad_progress:
        issues.append(ValidationIssue("value_ranges", "warning",
                                      "Report progress outside 0-100",
                                      sample=bad_progress[0], count=len(bad_progress)))
    bad_years = [p.id for p in store.list_projects()
                 if p.fiscal_year is not None and not is_valid_fiscal_year(p.fiscal_year)]
    if bad_years:
        issues.append(ValidationIssue("value_ranges", "warning",
                                      "Projects with a malformed fiscal year",
                                      sample=bad_years[0], count=len(bad_years)))
    return issues


def build_registry() -> ValidationRegistry:
    registry = ValidationRegistry()
    registry.register("report_projects", check_report_projects)
    registry.register("project_units", check_project_units)
    registry.register("report_denormalization", check_report_denormalization)
    registry.register("project_groups", check_project_groups)
    registry.register("value_ranges", check_value_ranges)
    return registry


def check_integrity(store: EntityStore) -> ValidationResult:
    """Run every integrity check against *store*."""
    return build_registry().run_all(store)
