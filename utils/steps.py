"""
Step accounting for the one-shot store operations run at process start.

A StepReport records what a step touched, what it left alone (as categorized
SkipRecords) and any errors; StepLog times a sequence of steps, logs one line
per finished step and can dump the whole run as JSON.

Skip categories used by the store:
    already_done   collection already stored, nothing seeded
    not_expired    soft-deleted project still inside the trash window
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class SkipRecord:
    """A record or key a step deliberately did not act on."""

    category: str
    detail: str
    item: str = ""         # record id or storage key

    def to_dict(self) -> dict[str, str]:
        out = {"category": self.category, "detail": self.detail}
        if self.item:
            out["item"] = self.item
        return out


@dataclass
class StepReport:
    """Outcome of one startup step."""

    step_name: str
    status: str = "not_started"        # started | completed | failed
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def items_skipped(self) -> int:
        return len(self.skips)

    @property
    def items_errored(self) -> int:
        return len(self.errors)

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        self.skips.append(SkipRecord(category, detail, item))

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def skip_counts_by_category(self) -> dict[str, int]:
        return dict(Counter(s.category for s in self.skips))

    def console_summary(self) -> str:
        """Single line for the terminal; list and flag metrics are left out."""
        parts = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} processed")
        if self.skips:
            by_category = ", ".join(
                f"{n} {category.replace('_', ' ')}"
                for category, n in sorted(self.skip_counts_by_category().items())
            )
            parts.append(f"{self.items_skipped:,} skipped ({by_category})")
        if self.errors:
            parts.append(f"{self.items_errored:,} errors")
        for name, value in self.metrics.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            parts.append(f"{name}: {value:,}" if isinstance(value, int) else f"{name}: {value:.1f}")
        return " | ".join(parts) or "no activity"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        if self.skips:
            out["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            out["errors"] = list(self.errors)
        return out


class StepLog:
    """Ordered StepReports of a single run, keyed by step name."""

    def __init__(self) -> None:
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_start = time.monotonic()
        self._started: dict[str, float] = {}
        self._reports: dict[str, StepReport] = {}

    def start_step(self, step_name: str) -> StepReport:
        self._started[step_name] = time.monotonic()
        self._reports[step_name] = StepReport(step_name, status="started")
        return self._reports[step_name]

    def finish_step(self, step_name: str, report: StepReport | None = None) -> StepReport:
        """Stamp elapsed time on *report* (or the started one) and log it.

        A report still marked ``started`` becomes ``completed``; any other
        status set by the step is kept.
        """
        report = report or self._reports.get(step_name) or StepReport(step_name)
        report.elapsed_seconds = time.monotonic() - self._started.pop(step_name, self.run_start)
        if report.status == "started":
            report.status = "completed"
        self._reports[step_name] = report
        logger.info("[%s] %s: %s", step_name, report.status, report.console_summary())
        return report

    def fail_step(self, step_name: str, error: BaseException) -> StepReport:
        report = self._reports.get(step_name) or StepReport(step_name)
        report.add_error(str(error))
        report.status = "failed"
        return self.finish_step(step_name, report)

    def get_reports(self) -> dict[str, StepReport]:
        return dict(self._reports)

    def write_summary(self, path: Path) -> Path:
        """Write the run (id, total time, every step) to *path* as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self.run_start, 2),
            "steps": {name: r.to_dict() for name, r in self._reports.items()},
        }, indent=2), encoding="utf-8")
        return path
