"""
Whole-store backup and restore.

The backup document is a single JSON object::

    {
      "reports":  [...],
      "projects": [...],
      "units":    [...],
      "groups":   [...],
      "timestamp": 1760000000000,   # ms since epoch
      "version":   "1.0"
    }

Import checks the whole document before touching storage.  ``reports``,
``projects`` and ``units`` are required; ``groups`` is optional and, when
missing, the stored groups are kept.  A record that does not validate is
imported as stored, with a warning.  If anything else is wrong nothing is
written and a falsy ImportResult explains why.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from storage.codec import encode
from storage.entity_store import EntityStore
from storage.models import Project, ProjectGroup, Record, Report, Unit
from utils.config import BuiltInDefaults
from utils.validation import ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

REQUIRED_COLLECTIONS: dict[str, type[Record]] = {
    "reports": Report,
    "projects": Project,
    "units": Unit,
}
OPTIONAL_COLLECTIONS: dict[str, type[Record]] = {
    "groups": ProjectGroup,
}


@dataclass
class ImportResult:
    """Yes/no outcome of an import, with the reasons for a refusal."""

    ok: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def error(self) -> str | None:
        if self.ok:
            return None
        return "; ".join(issue.detail for issue in self.issues) or "Invalid backup file format"


def export_all(store: EntityStore, now_ms: int | None = None) -> dict[str, Any]:
    """Snapshot every collection into a backup document (no writes)."""
    return {
        "reports": [r.to_wire() for r in store.list_reports()],
        "projects": [p.to_wire() for p in store.list_projects()],
        "units": [u.to_wire() for u in store.list_units()],
        "groups": [g.to_wire() for g in store.list_groups()],
        "timestamp": store.now_ms() if now_ms is None else now_ms,
        "version": BuiltInDefaults.BACKUP_FORMAT_VERSION,
    }


def export_json(store: EntityStore, now_ms: int | None = None) -> str:
    """Backup document as pretty-printed JSON text."""
    return json.dumps(export_all(store, now_ms), indent=2, ensure_ascii=False)


def validate_document(document: Any) -> tuple[ValidationResult, dict[str, list[BaseModel]]]:
    """Check a parsed backup document and build its records.

    Returns:
        (validation result, records per collection name).  The records are
        only complete when the result is valid.
    """
    result = ValidationResult()
    parsed: dict[str, list[BaseModel]] = {}

    if not isinstance(document, Mapping):
        result.add_issue("document", "error", "Invalid backup file format",
                         sample=type(document).__name__)
        result.mark_check_failed("document")
        return result, parsed

    collections = [(name, model, True) for name, model in REQUIRED_COLLECTIONS.items()]
    collections += [(name, model, False) for name, model in OPTIONAL_COLLECTIONS.items()]

    for name, model, required in collections:
        raw = document.get(name)
        if raw is None:
            if required:
                result.add_issue(name, "error", f"Missing required collection '{name}'")
                result.mark_check_failed(name)
            continue
        if not isinstance(raw, list):
            result.add_issue(name, "error", f"Collection '{name}' must be a list",
                             sample=type(raw).__name__)
            result.mark_check_failed(name)
            continue

        records: list[BaseModel] = []
        non_objects = unvalidated = 0
        first_problem: str | None = None
        for item in raw:
            if not isinstance(item, Mapping):
                non_objects += 1
                continue
            record, problem = model.from_stored(dict(item))
            if problem is not None:
                unvalidated += 1
                first_problem = first_problem or problem
            records.append(record)
        if non_objects:
            result.add_issue(name, "error",
                             f"{non_objects} non-object element(s) in '{name}'",
                             count=non_objects)
            result.mark_check_failed(name)
            continue
        if unvalidated:
            result.add_issue(name, "warning",
                             f"{unvalidated} record(s) in '{name}' kept as stored",
                             sample=first_problem, count=unvalidated)
        parsed[name] = records
        result.mark_check_passed(name)

    return result, parsed


def import_all(store: EntityStore, document: str | Mapping[str, Any]) -> ImportResult:
    """Replace the stored collections with the contents of *document*.

    Args:
        store: Store to overwrite.
        document: Backup document, as JSON text or an already-parsed mapping.

    Returns:
        Truthy ImportResult on success; falsy with issues otherwise, in which
        case storage is left exactly as it was.
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            logger.error("Import failed: %s", exc)
            issue = ValidationIssue("document", "error", f"Backup is not valid JSON: {exc}")
            return ImportResult(ok=False, issues=[issue])

    result, parsed = validate_document(document)
    if not result.is_valid():
        logger.error("Import failed: %s",
                     "; ".join(i.detail for i in result.get_issues_by_severity("error")))
        return ImportResult(ok=False, issues=result.issues)

    keys = store.keys
    key_for = {"reports": keys.reports, "projects": keys.projects,
               "units": keys.units, "groups": keys.groups}
    store.kv.set_many([(key_for[name], encode(records)) for name, records in parsed.items()])

    counts = {name: len(records) for name, records in parsed.items()}
    logger.info("Imported backup: %s",
                ", ".join(f"{n} {name}" for name, n in counts.items()))
    return ImportResult(ok=True, issues=result.issues, counts=counts)
