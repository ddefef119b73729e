"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class MatchType(StrEnum):
    """Outcome of matching one cohort record against the identity store.

    Declaration order is the tier order, and the order small-sample runs use
    when picking one record per category.
    """

    EMAIL_EXACT = "EmailExact"
    NAME_UNIQUE_MATCH = "NameUniqueMatch"
    NAME_AMBIGUOUS = "NameAmbiguous"
    NO_MATCH = "NoMatch"


class IntendedAction(StrEnum):
    UPDATE_EXISTING = "UpdateExisting"
    CREATE_NEW = "CreateNew"


class ExecutionOutcome(StrEnum):
    NOT_EXECUTED = "not_executed"
    UPDATED = "updated"
    CREATED = "created"
    SKIPPED_ALREADY_MIGRATED = "skipped_already_migrated"
    FAILED = "failed"


class RunMode(StrEnum):
    CLASSIFY = "classify"
    SMALL_SAMPLE = "small_sample"
    EXECUTE = "execute"

    @property
    def audit_action(self) -> AuditAction:
        return AuditAction(self.value)


class AuditAction(StrEnum):
    CLASSIFY = "classify"
    SMALL_SAMPLE = "small_sample"
    EXECUTE = "execute"
    ROLLBACK = "rollback"


class AuditStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PasswordSetMethod(StrEnum):
    TEMP_MIGRATION_PASSWORD = "temp_migration_password"  # noqa: S105
    FORCED_MIGRATION_RESET = "forced_migration_reset"


class AccessTier(StrEnum):
    """Subscription tiers, lowest first."""

    FREE = "free"
    GOLD = "gold"
    PLATINUM = "platinum"


class GuardState(StrEnum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    LOCKED = "locked"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    UNLOCKED = "unlocked"


class ViolationKind(StrEnum):
    QUARANTINED_EXECUTION_ATTEMPT = "quarantined_execution_attempt"
    UNGUARDED_DESTRUCTIVE_CALL = "unguarded_destructive_call"
    UNREGISTERED_OPERATION = "unregistered_operation"
    UNAUTHORIZED_ACTOR = "unauthorized_actor"
    EMERGENCY_BLOCKED = "emergency_blocked"
    CONCURRENT_RUN_REJECTED = "concurrent_run_rejected"
    REGISTRY_CHANGED = "registry_changed"
    OPERATION_FAILED = "operation_failed"
