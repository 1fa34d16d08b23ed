"""Validation containers shared by backup import and the integrity checks.

A check is any callable ``check(target) -> list[ValidationIssue]``.  Checks
are collected in a ValidationRegistry and run together into one
ValidationResult; only ``error`` issues make a result invalid.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass
class ValidationIssue:
    """One problem found by a check.

    Attributes:
        check_name: Check (or backup collection) that found the problem
        severity: 'error', 'warning' or 'info'
        detail: Human-readable description
        sample: First offending value, usually a record id
        count: Number of affected records
    """

    check_name: str
    severity: str
    detail: str
    sample: Optional[Any] = None
    count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check": self.check_name,
            "severity": self.severity,
            "detail": self.detail,
            "sample": None if self.sample is None else str(self.sample),
            "count": self.count,
        }


class ValidationResult:
    """Issues plus the names of the checks that passed and failed."""

    def __init__(self):
        self.issues: List[ValidationIssue] = []
        self.passed_checks: List[str] = []
        self.failed_checks: List[str] = []

    def add_issue(self, check_name: str, severity: str, detail: str,
                  sample: Optional[Any] = None, count: int = 1) -> None:
        self.issues.append(ValidationIssue(check_name, severity, detail, sample, count))

    def mark_check_passed(self, check_name: str) -> None:
        self.passed_checks.append(check_name)

    def mark_check_failed(self, check_name: str) -> None:
        self.failed_checks.append(check_name)

    def get_issues_by_severity(self, severity: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    def error_count(self) -> int:
        return len(self.get_issues_by_severity("error"))

    def warning_count(self) -> int:
        return len(self.get_issues_by_severity("warning"))

    def is_valid(self) -> bool:
        """True when no error-level issue was recorded (warnings are fine)."""
        return self.error_count() == 0

    def summary_text(self) -> str:
        return "\n".join([
            "Validation Summary:",
            f"  Passed Checks: {len(self.passed_checks)}",
            f"  Failed Checks: {len(self.failed_checks)}",
            f"  Issues: {len(self.issues)}",
            f"    - Errors: {self.error_count()}",
            f"    - Warnings: {self.warning_count()}",
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed_checks": list(self.passed_checks),
            "failed_checks": list(self.failed_checks),
            "issues": [i.to_dict() for i in self.issues],
            "summary": {
                "total_checks": len(self.passed_checks) + len(self.failed_checks),
                "passed": len(self.passed_checks),
                "failed": len(self.failed_checks),
                "issues": len(self.issues),
                "errors": self.error_count(),
                "warnings": self.warning_count(),
            },
        }


class ValidationRegistry:
    """Named checks run in registration order."""

    def __init__(self):
        self.checks: Dict[str, Callable[[Any], List[ValidationIssue]]] = {}

    def register(self, name: str, check_fn: Callable[[Any], List[ValidationIssue]]) -> None:
        self.checks[name] = check_fn

    def run_all(self, target: Any,
                skip_checks: Optional[List[str]] = None) -> ValidationResult:
        """Run every registered check against *target*.

        A check that raises is recorded as a failed check with one error
        issue; the remaining checks still run.

        Args:
            target: Object handed to every check (an EntityStore for the
                integrity checks)
            skip_checks: Names of checks to leave out

        Returns:
            ValidationResult with all issues found
        """
        skip = set(skip_checks or ())
        result = ValidationResult()
        for name, check_fn in self.checks.items():
            if name in skip:
                continue
            try:
                issues = check_fn(target)
            except Exception as exc:
                result.add_issue(name, "error", f"Check raised exception: {str(exc)[:100]}")
                result.mark_check_failed(name)
                continue
            result.issues.extend(issues)
            if issues:
                result.mark_check_failed(name)
            else:
                result.mark_check_passed(name)
        return result


def is_valid_progress(value: Any) -> bool:
    """Progress must be a number from 0 to 100 inclusive (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0 <= value <= 100


def is_valid_fiscal_year(year: Any) -> bool:
    """Fiscal years are four-digit Buddhist-era strings such as "2569"."""
    return isinstance(year, str) and len(year) == 4 and year.isdigit()
