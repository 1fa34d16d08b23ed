"""Configuration for the compliance tracker.

Provides:
- Environment-driven application settings
- Well-known storage keys for the persisted collections
- Built-in default data seeded on first run
"""

from pathlib import Path
from typing import Dict, Any, List
import copy
import logging
import os

logger = logging.getLogger(__name__)


class StorageKeys:
    """Keys under which the four collections are persisted.

    The ``_v1`` suffix is part of the stored layout; existing data written by
    earlier releases lives under exactly these names.
    """

    def __init__(self, prefix: str = "j1_action_plan"):
        self.reports = f"{prefix}_reports_v1"
        self.projects = f"{prefix}_projects_v1"
        self.units = f"{prefix}_units_v1"
        self.groups = f"{prefix}_groups_v1"


class BuiltInDefaults:
    """Container for fixed fallback values and the first-run data set."""

    FISCAL_YEAR = "2569"
    UNIT_PASSWORD = "123"
    TRASH_RETENTION_DAYS = 30
    BACKUP_FORMAT_VERSION = "1.0"
    UNSPECIFIED_PROJECT_NAME = "Unspecified"

    UNITS = [
        {"id": "admin", "name": "Administrator", "password": "admin"},
        {"id": "unit-personnel", "name": "Personnel Division", "password": "123"},
        {"id": "unit-welfare", "name": "Welfare Division", "password": "123"},
        {"id": "unit-training", "name": "Training Division", "password": "123"},
    ]

    PROJECTS = [
        {
            "id": "proj-manpower-plan",
            "name": "Manpower Planning Review",
            "unitId": "unit-personnel",
            "fiscalYear": "2569",
        },
        {
            "id": "proj-welfare-housing",
            "name": "Housing Welfare Programme",
            "unitId": "unit-welfare",
            "fiscalYear": "2569",
        },
        {
            "id": "proj-annual-training",
            "name": "Annual Training Plan",
            "unitId": "unit-training",
            "fiscalYear": "2569",
        },
    ]

    @classmethod
    def units(cls) -> List[Dict[str, Any]]:
        """Return a fresh copy of the default units."""
        return copy.deepcopy(cls.UNITS)

    @classmethod
    def projects(cls) -> List[Dict[str, Any]]:
        """Return a fresh copy of the default projects."""
        return copy.deepcopy(cls.PROJECTS)


class StoreConfig:
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the tools work out of the box.

    Environment variables:
        APP_DB_PATH: Path to the SQLite store file (default: compliance_tracker.sqlite)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        BACKUP_DIR: Directory for backup documents (default: backups)
        APP_TRASH_RETENTION_DAYS: Days a soft-deleted project is kept (default: 30)
    """

    def __init__(self) -> None:
        self.db_path = Path(os.getenv("APP_DB_PATH", "compliance_tracker.sqlite"))
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        self.backup_dir = Path(os.getenv("BACKUP_DIR", "backups"))
        self.trash_retention_days = _int_env(
            "APP_TRASH_RETENTION_DAYS", BuiltInDefaults.TRASH_RETENTION_DAYS)

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create a StoreConfig instance populated from environment variables."""
        return cls()


def _int_env(name: str, default: int) -> int:
    """Integer env var; an unset or non-integer value falls back to *default*."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer); using %d", name, raw, default)
        return default
