"""
Report sheet export for the dashboard.

Writes the reports collection (optionally one unit's reports) as CSV or as an
Excel workbook.  The workbook uses openpyxl write-only mode and carries a
Metadata sheet ahead of the data sheet.
"""

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl

from storage.entity_store import EntityStore
from storage.models import Report

REPORT_COLUMNS = [
    "id", "unitId", "unitName", "projectId", "projectName",
    "status", "progress", "details", "problems", "reportDateEnd", "timestamp",
]

STATUS_LABELS = {
    "ontrack": "On track",
    "delayed": "Delayed",
    "risk": "At risk",
}


def report_rows(reports: List[Report]) -> List[List[Any]]:
    """Flatten reports into rows matching REPORT_COLUMNS."""
    rows = []
    for report in reports:
        wire = report.to_wire()
        rows.append([wire.get(col, "") for col in REPORT_COLUMNS])
    return rows


def _select(store: EntityStore, unit_id: Optional[str]) -> List[Report]:
    reports = store.list_reports()
    if unit_id is not None:
        reports = [r for r in reports if r.unit_id == unit_id]
    return reports


def write_reports_csv(store: EntityStore, path: Path,
                      unit_id: Optional[str] = None) -> int:
    """Write reports to a CSV file.

    Returns:
        Number of report rows written.
    """
    rows = report_rows(_select(store, unit_id))
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(REPORT_COLUMNS)
        writer.writerows(rows)
    return len(rows)


def write_reports_xlsx(store: EntityStore, path: Path,
                       unit_id: Optional[str] = None,
                       metadata: Optional[Dict[str, Any]] = None) -> int:
    """Write reports to an Excel workbook.

    Args:
        store: Source store.
        path: Destination ``.xlsx`` path.
        unit_id: Limit to one unit's reports.
        metadata: Extra key/value rows for the Metadata sheet.

    Returns:
        Number of report rows written.
    """
    reports = _select(store, unit_id)
    rows = report_rows(reports)

    wb = openpyxl.Workbook(write_only=True)
    meta_ws = wb.create_sheet("Metadata")
    meta_ws.append(["Export Date", datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")])
    meta_ws.append(["Unit Filter", unit_id or "all"])
    meta_ws.append(["Total Records", len(rows)])
    for key, value in (metadata or {}).items():
        meta_ws.append([key, value])

    ws = wb.create_sheet("Reports")
    ws.append(REPORT_COLUMNS + ["statusLabel"])
    for report, row in zip(reports, rows):
        ws.append(row + [STATUS_LABELS.get(report.status, report.status)])

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(path))
    return len(rows)
