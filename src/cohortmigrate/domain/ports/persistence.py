"""Ports for the identity store and the migration's durable records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cohortmigrate.domain.model import AuditEntry, Identity, SecurityViolation, Snapshot

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from cohortmigrate.domain.model import GuardLock


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class IdentityRepository(Repository[Identity], Protocol):
    """Lookups and writes the migration needs from the external identity store."""

    def get(self, identity_id: str) -> Identity | None: ...

    def find_by_email(self, normalized_email: str) -> Identity | None: ...

    def find_by_normalized_name(self, normalized_name: str) -> Sequence[Identity]: ...

    def update(self, identity: Identity, **changes: object) -> None: ...


@runtime_checkable
class SnapshotRepository(Repository[Snapshot], Protocol):
    def latest_for(self, identity_id: str, cohort: str) -> Snapshot | None: ...

    def list_for(self, identity_id: str, cohort: str) -> Sequence[Snapshot]: ...


@runtime_checkable
class AuditRepository(Repository[AuditEntry], Protocol):
    def get(self, entry_id: UUID) -> AuditEntry | None: ...

    def list_for_cohort(self, cohort: str) -> Sequence[AuditEntry]: ...


@runtime_checkable
class ViolationRepository(Repository[SecurityViolation], Protocol):
    def list_since(self, since: datetime | None = None) -> Sequence[SecurityViolation]: ...


@runtime_checkable
class LockStore(Protocol):
    """Atomic acquire-if-absent advisory locks with a time to live."""

    def acquire(self, operation: str, *, ttl_seconds: int) -> GuardLock:
        """Take the lock or raise ``LockHeldError`` if a live lock exists."""
        ...

    def release(self, lock: GuardLock) -> None: ...

    def current(self, operation: str) -> GuardLock | None: ...
