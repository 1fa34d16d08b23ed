"""
Pydantic entity records for the four persisted collections.

Attributes are snake_case; the persisted form uses the camelCase keys the
stored data has always used (``unitId``, ``deletedAt`` ...).  Optional fields
default to None and are omitted from the encoded form when unset, so an
absent ``groupId`` and an empty-string ``groupId`` stay distinguishable.
Unknown keys are kept and written back untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from utils.config import BuiltInDefaults

ReportStatus = Literal["ontrack", "delayed", "risk"]


class Record(BaseModel):
    """Common configuration for persisted records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str = Field(..., description="Caller-supplied unique identifier")
    _as_stored: bool = PrivateAttr(default=False)

    @field_validator("*", mode="before")
    @classmethod
    def _null_reads_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        """A stored ``null`` on a field with a non-null default becomes that default."""
        if value is None and info.field_name:
            field = cls.model_fields[info.field_name]
            if not field.is_required() and field.default is not None:
                return field.default
        return value

    @classmethod
    def from_stored(cls, data: dict[str, Any]) -> tuple[Record, str | None]:
        """Build a record from a stored object without ever discarding it.

        Returns ``(record, None)`` when *data* validates.  Otherwise the record
        is built unvalidated from the raw values so that it is written back as
        it was read, and the first validation message is returned with it.
        """
        try:
            return cls.model_validate(data), None
        except ValidationError as exc:
            values = dict(data)
            values.setdefault("id", None)
            record = cls.model_construct(**values)
            record._as_stored = True
            return record, str(exc.errors()[0].get("msg", exc))

    def to_wire(self) -> dict[str, Any]:
        """Return the persisted (camelCase, absent-fields-omitted) form."""
        wire = self.model_dump(by_alias=True, exclude_none=True, warnings=False)
        if self._as_stored:
            # Only the keys it was read with, plus fields changed since.
            fields = type(self).model_fields
            present = {fields[n].alias or n for n in self.model_fields_set if n in fields}
            present.update(self.model_extra or {})
            wire = {k: v for k, v in wire.items() if k in present}
        return wire


class Unit(Record):
    """An organizational unit that logs in and submits reports."""
    name: str = ""
    password: str | None = Field(None, description="Plaintext comparison value")


class ProjectGroup(Record):
    """Display bucket for projects."""
    name: str = ""


class Project(Record):
    """A tracked project owned by a unit."""
    name: str = ""
    unit_id: str = ""
    group_id: str | None = None
    fiscal_year: str | None = None
    deleted_at: int | None = Field(None, description="Soft-delete time, ms since epoch")

    @property
    def is_deleted(self) -> bool:
        # Presence check: a deletedAt of 0 still counts as in the trash.
        return self.deleted_at is not None

    @property
    def effective_fiscal_year(self) -> str:
        if isinstance(self.fiscal_year, str) and self.fiscal_year:
            return self.fiscal_year
        return BuiltInDefaults.FISCAL_YEAR


class Report(Record):
    """A progress report; unit and project names are denormalized copies."""
    unit_id: str = ""
    unit_name: str = ""
    project_id: str = ""
    project_name: str = ""
    status: str = "ontrack"
    progress: int | float = 0
    details: str = ""
    problems: str = ""
    report_date_end: str | None = None
    timestamp: str | None = None

    @property
    def end_date(self) -> str | None:
        """Date the report covers up to (falls back to submission time)."""
        return self.report_date_end or self.timestamp


class ReportSubmission(BaseModel):
    """Form input for a new report, validated before it reaches the store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_id: str = Field(..., min_length=1)
    status: ReportStatus = "ontrack"
    progress: int = Field(0, ge=0, le=100)
    details: str = ""
    problems: str = ""
    report_date_end: str | None = None

    def build_report(self, report_id: str, unit: Unit, project: Project,
                     now: datetime | None = None) -> Report:
        """Create the Report with names copied from *unit* and *project*."""
        now = now or datetime.now(timezone.utc)
        stamp = now.isoformat()
        return Report(
            id=report_id,
            unit_id=unit.id,
            unit_name=unit.name,
            project_id=self.project_id,
            project_name=project.name or BuiltInDefaults.UNSPECIFIED_PROJECT_NAME,
            status=self.status,
            progress=self.progress,
            details=self.details,
            problems=self.problems or "-",
            report_date_end=self.report_date_end or stamp,
            timestamp=stamp,
            month=now.month,
            year=now.year + 543,
        )
