"""Shared utilities for the compliance tracker tools."""

# Common utilities
from utils.common import format_bytes, format_timestamp_ms

# Database utilities
from utils.database import (
    connect,
    init_pragmas,
    table_exists,
)

# Validation utilities
from utils.validation import (
    ValidationIssue,
    ValidationResult,
    ValidationRegistry,
    is_valid_progress,
    is_valid_fiscal_year,
)

# Step accounting
from utils.steps import SkipRecord, StepReport, StepLog

# Configuration
from utils.config import (
    StorageKeys,
    BuiltInDefaults,
    StoreConfig,
)

__all__ = [
    # Common
    "format_bytes",
    "format_timestamp_ms",
    # Database
    "connect",
    "init_pragmas",
    "table_exists",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    "ValidationRegistry",
    "is_valid_progress",
    "is_valid_fiscal_year",
    # Steps
    "SkipRecord",
    "StepReport",
    "StepLog",
    # Config
    "StorageKeys",
    "BuiltInDefaults",
    "StoreConfig",
]
