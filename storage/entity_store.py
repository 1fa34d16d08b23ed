"""
Entity store for Reports, Projects, Units and Project Groups.

Each collection lives under one key of an injected KeyValueStore and is
rewritten whole on every mutation.  The store keeps the denormalized fields
on reports in step with their project and cascades removals so that no report
ever points at a project or unit that has been deleted:

    save_project     rename / owner change   -> rewrite matching reports
    delete_project   remove project          -> remove its reports
    delete_unit      remove unit             -> remove its projects and every
                                                report linked by unit or by
                                                one of those projects
    delete_group     remove group            -> clear groupId on its projects

Ids that match nothing are silent no-ops and nothing is written.

Usage::

    store = EntityStore(MemoryKeyValueStore())
    store.initialize_defaults()
    store.save_project(Project(id="p1", name="Training", unit_id="u1"))
    store.list_projects()
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from storage.codec import FallbackCallback, decode, encode
from storage.keyvalue import KeyValueStore
from storage.models import Project, ProjectGroup, Report, ReportSubmission, Unit
from utils.config import BuiltInDefaults, StorageKeys

logger = logging.getLogger(__name__)


class UnknownReferenceError(LookupError):
    """A report submission named a unit or project that does not exist."""


class EntityStore:
    """The four entity collections and their cascade rules.

    Args:
        kv: Backend holding the persisted collections.
        keys: Storage key names (defaults to the standard ``_v1`` keys).
        clock: Returns the current time in seconds since the epoch; used for
            soft-delete stamps.  Defaults to ``time.time``.
        on_fallback: Diagnostic callback invoked as ``(key, reason)`` when a
            stored collection cannot be decoded and a fallback is used.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        keys: StorageKeys | None = None,
        clock: Callable[[], float] | None = None,
        on_fallback: FallbackCallback | None = None,
    ) -> None:
        self.kv = kv
        self.keys = keys or StorageKeys()
        self._clock = clock or time.time
        self._on_fallback = on_fallback

    def now_ms(self) -> int:
        """Current time in milliseconds since the epoch."""
        return int(self._clock() * 1000)

    # ── persistence helpers ───────────────────────────────────────────────

    def _load(self, key: str, model: type[BaseModel],
              fallback: Sequence[Any] = ()) -> list[Any]:
        return decode(self.kv.get(key), model, fallback,
                      key=key, on_fallback=self._on_fallback).value

    def _write(self, *collections: tuple[str, Sequence[BaseModel]]) -> None:
        """Persist whole collections, in the order given, as one batch."""
        self.kv.set_many([(key, encode(records)) for key, records in collections])

    # ── initialization ────────────────────────────────────────────────────

    def initialize_defaults(self) -> list[str]:
        """Seed the built-in projects and units if their keys were never written.

        Returns:
            The keys that were seeded (empty when both already existed).
        """
        seeded: list[tuple[str, Sequence[BaseModel]]] = []
        if self.kv.get(self.keys.projects) is None:
            seeded.append((self.keys.projects,
                           [Project.model_validate(p) for p in BuiltInDefaults.projects()]))
        if self.kv.get(self.keys.units) is None:
            seeded.append((self.keys.units,
                           [Unit.model_validate(u) for u in BuiltInDefaults.units()]))
        if seeded:
            self._write(*seeded)
            logger.info("Seeded default data for %s", ", ".join(k for k, _ in seeded))
        return [k for k, _ in seeded]

    # ── reports ───────────────────────────────────────────────────────────

    def list_reports(self) -> list[Report]:
        return self._load(self.keys.reports, Report)

    def save_report(self, report: Report) -> None:
        """Insert *report*, or replace the stored report with the same id."""
        reports = self.list_reports()
        _upsert(reports, report)
        self._write((self.keys.reports, reports))

    def delete_report(self, report_id: str) -> None:
        reports = self.list_reports()
        remaining = [r for r in reports if r.id != report_id]
        if len(remaining) == len(reports):
            return
        self._write((self.keys.reports, remaining))

    def submit_report(self, unit_id: str, submission: ReportSubmission,
                      report_id: str | None = None,
                      now: datetime | None = None) -> Report:
        """Build a report from form input and save it.

        The unit and project names are copied onto the report at this point.

        Raises:
            UnknownReferenceError: If the unit or the project does not exist.
        """
        unit = self.get_unit(unit_id)
        if unit is None:
            raise UnknownReferenceError(f"Unknown unit: {unit_id}")
        project = self.get_project(submission.project_id)
        if project is None:
            raise UnknownReferenceError(f"Unknown project: {submission.project_id}")

        report = submission.build_report(report_id or str(uuid.uuid4()),
                                         unit, project, now=now)
        self.save_report(report)
        logger.debug("Report %s submitted by %s for %s", report.id, unit.id, project.id)
        return report

    # ── projects ──────────────────────────────────────────────────────────

    def list_projects(self) -> list[Project]:
        return self._load(self.keys.projects, Project, BuiltInDefaults.projects())

    def get_project(self, project_id: str) -> Project | None:
        return next((p for p in self.list_projects() if p.id == project_id), None)

    def save_project(self, project: Project) -> None:
        """Insert or replace *project*.

        When an existing project changes its name or owning unit, every report
        on that project is rewritten to carry the new name and unit before the
        project itself is stored.
        """
        projects = self.list_projects()
        index = _index_of(projects, project.id)
        writes: list[tuple[str, Sequence[BaseModel]]] = []

        if index is not None:
            old = projects[index]
            if old.name != project.name or old.unit_id != project.unit_id:
                reports = self.list_reports()
                touched = 0
                for report in reports:
                    if report.project_id == project.id:
                        report.project_name = project.name
                        report.unit_id = project.unit_id
                        touched += 1
                if touched:
                    writes.append((self.keys.reports, reports))
                    logger.info("Synced %d report(s) to project %s", touched, project.id)
            projects[index] = project
        else:
            projects.append(project)

        writes.append((self.keys.projects, projects))
        self._write(*writes)

    def soft_delete_project(self, project_id: str) -> None:
        """Move a project to the trash by stamping ``deletedAt``."""
        self._set_deleted_at(project_id, self.now_ms())

    def restore_project(self, project_id: str) -> None:
        """Take a project out of the trash."""
        self._set_deleted_at(project_id, None)

    def _set_deleted_at(self, project_id: str, value: int | None) -> None:
        projects = self.list_projects()
        index = _index_of(projects, project_id)
        if index is None:
            return
        projects[index] = projects[index].model_copy(update={"deleted_at": value})
        self._write((self.keys.projects, projects))

    def delete_project(self, project_id: str) -> None:
        """Permanently delete a project and all of its reports."""
        self.purge_projects([project_id])

    def purge_projects(self, project_ids: Iterable[str]) -> tuple[int, int]:
        """Permanently delete several projects and their reports at once.

        Both collections are rewritten at most once regardless of how many
        ids are given.

        Returns:
            (projects removed, reports removed)
        """
        ids = set(project_ids)
        if not ids:
            return 0, 0
        projects = self.list_projects()
        reports = self.list_reports()
        kept_projects = [p for p in projects if p.id not in ids]
        kept_reports = [r for r in reports if r.project_id not in ids]

        writes: list[tuple[str, Sequence[BaseModel]]] = []
        if len(kept_projects) != len(projects):
            writes.append((self.keys.projects, kept_projects))
        if len(kept_reports) != len(reports):
            writes.append((self.keys.reports, kept_reports))
        if writes:
            self._write(*writes)
        removed = (len(projects) - len(kept_projects), len(reports) - len(kept_reports))
        if any(removed):
            logger.info("Purged %d project(s) and %d report(s)", *removed)
        return removed

    # ── units ─────────────────────────────────────────────────────────────

    def list_units(self) -> list[Unit]:
        """Return all units.

        Units stored before passwords existed are given the default password
        here; the stored data is not rewritten.
        """
        units = self._load(self.keys.units, Unit, BuiltInDefaults.units())
        for unit in units:
            if not unit.password:
                unit.password = BuiltInDefaults.UNIT_PASSWORD
        return units

    def get_unit(self, unit_id: str) -> Unit | None:
        return next((u for u in self.list_units() if u.id == unit_id), None)

    def save_unit(self, unit: Unit) -> None:
        units = self.list_units()
        _upsert(units, unit)
        self._write((self.keys.units, units))

    def delete_unit(self, unit_id: str) -> None:
        """Delete a unit, its projects, and every report tied to either."""
        units = self.list_units()
        projects = self.list_projects()
        reports = self.list_reports()

        owned = {p.id for p in projects if p.unit_id == unit_id}
        kept_units = [u for u in units if u.id != unit_id]
        kept_projects = [p for p in projects if p.id not in owned]
        # A report may have moved to another unit's project, or its project
        # may have moved away from this unit; both links are checked.
        kept_reports = [r for r in reports
                        if r.unit_id != unit_id and r.project_id not in owned]

        writes: list[tuple[str, Sequence[BaseModel]]] = []
        if len(kept_units) != len(units):
            writes.append((self.keys.units, kept_units))
        if len(kept_projects) != len(projects):
            writes.append((self.keys.projects, kept_projects))
        if len(kept_reports) != len(reports):
            writes.append((self.keys.reports, kept_reports))
        if not writes:
            return
        self._write(*writes)
        logger.info("Deleted unit %s with %d project(s) and %d report(s)",
                    unit_id, len(owned), len(reports) - len(kept_reports))

    # ── project groups ────────────────────────────────────────────────────

    def list_groups(self) -> list[ProjectGroup]:
        return self._load(self.keys.groups, ProjectGroup)

    def save_group(self, group: ProjectGroup) -> None:
        groups = self.list_groups()
        _upsert(groups, group)
        self._write((self.keys.groups, groups))

    def delete_group(self, group_id: str) -> None:
        """Delete a group; its projects stay but lose their ``groupId``."""
        groups = self.list_groups()
        projects = self.list_projects()
        kept_groups = [g for g in groups if g.id != group_id]

        unlinked = 0
        for index, project in enumerate(projects):
            if project.group_id == group_id:
                projects[index] = project.model_copy(update={"group_id": None})
                unlinked += 1

        writes: list[tuple[str, Sequence[BaseModel]]] = []
        if len(kept_groups) != len(groups):
            writes.append((self.keys.groups, kept_groups))
        if unlinked:
            writes.append((self.keys.projects, projects))
        if writes:
            self._write(*writes)


def _index_of(records: Sequence[BaseModel], record_id: str) -> int | None:
    for index, record in enumerate(records):
        if record.id == record_id:
            return index
    return None


def _upsert(records: list[Any], record: BaseModel) -> None:
    index = _index_of(records, record.id)
    if index is None:
        records.append(record)
    else:
        records[index] = record
