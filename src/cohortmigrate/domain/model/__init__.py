"""Public domain model surface."""

from __future__ import annotations

from cohortmigrate.domain.model.audit import (
    AuditEntry,
    EmergencyDisableFlag,
    GuardLock,
    SecurityViolation,
    Snapshot,
)
from cohortmigrate.domain.model.cohort import CohortRecord, RowError
from cohortmigrate.domain.model.enums import (
    AccessTier,
    AuditAction,
    AuditStatus,
    ExecutionOutcome,
    GuardState,
    IntendedAction,
    MatchType,
    PasswordSetMethod,
    RunMode,
    ViolationKind,
)
from cohortmigrate.domain.model.identity import (
    MUTABLE_FIELDS,
    Identity,
    new_identity_id,
    normalize_email,
    normalize_name,
    split_display_name,
)
from cohortmigrate.domain.model.results import MatchResult, MigrationReport

__all__ = [  # noqa: RUF022
    # identity
    "Identity",
    "MUTABLE_FIELDS",
    "new_identity_id",
    "normalize_email",
    "normalize_name",
    "split_display_name",
    # cohort
    "CohortRecord",
    "RowError",
    # results
    "MatchResult",
    "MigrationReport",
    # durable records
    "AuditEntry",
    "EmergencyDisableFlag",
    "GuardLock",
    "SecurityViolation",
    "Snapshot",
    # enums
    "AccessTier",
    "AuditAction",
    "AuditStatus",
    "ExecutionOutcome",
    "GuardState",
    "IntendedAction",
    "MatchType",
    "PasswordSetMethod",
    "RunMode",
    "ViolationKind",
]
