"""Cohort migration: snapshots, execution, audit and the run modes."""

from __future__ import annotations

from .audit import AuditLog
from .executor import MigrationExecutor
from .pipeline import (
    EXECUTE_OPERATION,
    ROLLBACK_OPERATION,
    SAMPLE_OPERATION,
    MigrationPipeline,
    migration_operations,
    select_sample,
)
from .snapshots import capture_fields, restore_values, rollback_identity, take_snapshot

__all__ = [
    "EXECUTE_OPERATION",
    "ROLLBACK_OPERATION",
    "SAMPLE_OPERATION",
    "AuditLog",
    "MigrationExecutor",
    "MigrationPipeline",
    "capture_fields",
    "migration_operations",
    "restore_values",
    "rollback_identity",
    "select_sample",
    "take_snapshot",
]
