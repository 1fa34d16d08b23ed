"""
Trash reclamation: permanently remove projects soft-deleted too long ago.

Runs once at process start.  A project is purged when ``deletedAt`` is set
and more than the retention window (30 days by default) has passed since.
Expired projects and their reports are removed with a single rewrite of each
collection, however many projects expire together.
"""

from __future__ import annotations

import logging
import math

from storage.entity_store import EntityStore
from storage.models import Project
from utils.config import BuiltInDefaults
from utils.steps import StepReport

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def retention_ms(retention_days: int = BuiltInDefaults.TRASH_RETENTION_DAYS) -> int:
    return retention_days * DAY_MS


def _deleted_ms(project: Project) -> int | float | None:
    # A record kept as stored may carry a deletedAt that is not a number.
    value = project.deleted_at
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def is_expired(project: Project, now_ms: int,
               retention_days: int = BuiltInDefaults.TRASH_RETENTION_DAYS) -> bool:
    """True when *project* sat in the trash for longer than the window."""
    deleted_at = _deleted_ms(project)
    if deleted_at is None:
        return False
    return now_ms - deleted_at > retention_ms(retention_days)


def days_until_purge(project: Project, now_ms: int,
                     retention_days: int = BuiltInDefaults.TRASH_RETENTION_DAYS) -> int | None:
    """Whole days left before *project* is purged (None if not in the trash)."""
    deleted_at = _deleted_ms(project)
    if deleted_at is None:
        return None
    remaining = deleted_at + retention_ms(retention_days) - now_ms
    return max(0, math.ceil(remaining / DAY_MS))


def sweep_expired_projects(
    store: EntityStore,
    now_ms: int | None = None,
    retention_days: int = BuiltInDefaults.TRASH_RETENTION_DAYS,
) -> StepReport:
    """Purge every expired project (and its reports) from *store*.

    Args:
        store: Entity store to sweep.
        now_ms: Reference time in ms since the epoch (defaults to the store clock).
        retention_days: Trash retention window.

    Returns:
        StepReport with ``projects_purged`` / ``reports_purged`` metrics and
        one ``not_expired`` skip per project still inside the window.
    """
    now_ms = store.now_ms() if now_ms is None else now_ms
    report = StepReport(step_name="trash_sweep", status="started")

    expired: list[str] = []
    for project in store.list_projects():
        if project.deleted_at is None:
            continue
        report.items_processed += 1
        if is_expired(project, now_ms, retention_days):
            expired.append(project.id)
        else:
            report.add_skip("not_expired",
                            f"{days_until_purge(project, now_ms, retention_days)} day(s) left",
                            item=project.id)

    projects_purged, reports_purged = store.purge_projects(expired)
    report.metrics["projects_purged"] = projects_purged
    report.metrics["reports_purged"] = reports_purged
    report.metrics["purged_ids"] = expired
    report.status = "completed"
    if expired:
        logger.info("Trash sweep purged %d project(s): %s", projects_purged, ", ".join(expired))
    else:
        logger.debug("Trash sweep found nothing to purge")
    return report
