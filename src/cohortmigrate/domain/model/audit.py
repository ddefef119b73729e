"""Durable, append-only records: snapshots, run audit entries, security violations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from .enums import AuditStatus

if TYPE_CHECKING:
    from .enums import AuditAction, ViolationKind


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class Snapshot:
    """Pre-mutation copy of an identity's mutable fields; the sole source for rollback."""

    id: UUID = field(default_factory=uuid4)
    identity_id: str
    cohort: str
    fields: dict[str, Any]
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class AuditEntry:
    """One entry per run; per-record detail accumulates in ``payload``."""

    id: UUID = field(default_factory=uuid4)
    cohort: str
    action: AuditAction
    executed_by: str
    status: AuditStatus = AuditStatus.RUNNING
    records_processed: int = 0
    records_successful: int = 0
    records_errored: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None


@dataclass(eq=False, kw_only=True)
class SecurityViolation:
    id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)
    operation: str
    kind: ViolationKind
    actor: str
    prevented: bool
    detail: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class GuardLock:
    """Advisory lock held for the duration of one destructive run."""

    operation: str
    lock_id: str
    process_id: int
    acquired_at: datetime
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True, slots=True, kw_only=True)
class EmergencyDisableFlag:
    reason: str
    disabled_by: str
    created_at: datetime
