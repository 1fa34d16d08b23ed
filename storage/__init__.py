"""Local multi-entity store for the unit compliance tracker."""

# Records
from storage.models import (
    Unit,
    ProjectGroup,
    Project,
    Report,
    ReportSubmission,
)

# Persistence backends
from storage.keyvalue import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
)

# Codec
from storage.codec import DecodeResult, encode, decode

# Entity store
from storage.entity_store import EntityStore, UnknownReferenceError

# Trash reclamation
from storage.reclamation import sweep_expired_projects, days_until_purge, is_expired

# Backup / restore
from storage.backup import ImportResult, export_all, export_json, import_all

# Queries
from storage.queries import (
    latest_report,
    reports_for_project,
    reports_for_unit,
    active_projects,
    trashed_projects,
    available_fiscal_years,
    projects_by_group,
)

# Startup
from storage.startup import open_store, run_startup

__all__ = [
    # Records
    "Unit",
    "ProjectGroup",
    "Project",
    "Report",
    "ReportSubmission",
    # Backends
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    # Codec
    "DecodeResult",
    "encode",
    "decode",
    # Entity store
    "EntityStore",
    "UnknownReferenceError",
    # Reclamation
    "sweep_expired_projects",
    "days_until_purge",
    "is_expired",
    # Backup
    "ImportResult",
    "export_all",
    "export_json",
    "import_all",
    # Queries
    "latest_report",
    "reports_for_project",
    "reports_for_unit",
    "active_projects",
    "trashed_projects",
    "available_fiscal_years",
    "projects_by_group",
    # Startup
    "open_store",
    "run_startup",
]
