"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from cohortmigrate.adapters.sqlalchemy.mappings import (
    identity_table,
    migration_audit_log_table,
    migration_snapshot_table,
    security_violation_table,
)
from cohortmigrate.domain.model import (
    AuditEntry,
    Identity,
    SecurityViolation,
    Snapshot,
    normalize_email,
    normalize_name,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyIdentityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Identity) -> None:
        self.session.add(entity)

    def get(self, identity_id: str) -> Identity | None:
        return self.session.get(Identity, identity_id)

    def find_by_email(self, normalized_email: str) -> Identity | None:
        stmt = (
            select(Identity)
            .where(identity_table.c.email_key == normalize_email(normalized_email))
            .order_by(identity_table.c.created_at, identity_table.c.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def find_by_normalized_name(self, normalized_name: str) -> Sequence[Identity]:
        target = normalize_name(normalized_name)
        if not target:
            return []
        stmt = (
            select(Identity)
            .where(identity_table.c.name_key == target)
            .order_by(identity_table.c.created_at, identity_table.c.id)
        )
        return self.session.execute(stmt).scalars().all()

    def update(self, identity: Identity, **changes: object) -> None:
        unknown = sorted(name for name in changes if name not in identity_table.c)
        if unknown:
            raise ValueError(f"Unknown identity fields: {', '.join(unknown)}")
        for name, value in changes.items():
            setattr(identity, name, value)
        self.session.add(identity)


class SqlAlchemySnapshotRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Snapshot) -> None:
        self.session.add(entity)

    def latest_for(self, identity_id: str, cohort: str) -> Snapshot | None:
        stmt = (
            select(Snapshot)
            .where(migration_snapshot_table.c.identity_id == identity_id)
            .where(migration_snapshot_table.c.cohort == cohort)
            .order_by(migration_snapshot_table.c.created_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def list_for(self, identity_id: str, cohort: str) -> Sequence[Snapshot]:
        stmt = (
            select(Snapshot)
            .where(migration_snapshot_table.c.identity_id == identity_id)
            .where(migration_snapshot_table.c.cohort == cohort)
            .order_by(migration_snapshot_table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyAuditRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditEntry) -> None:
        self.session.add(entity)

    def get(self, entry_id: UUID) -> AuditEntry | None:
        return self.session.get(AuditEntry, entry_id)

    def list_for_cohort(self, cohort: str) -> Sequence[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(migration_audit_log_table.c.cohort == cohort)
            .order_by(migration_audit_log_table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyViolationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SecurityViolation) -> None:
        self.session.add(entity)

    def list_since(self, since: datetime | None = None) -> Sequence[SecurityViolation]:
        stmt = select(SecurityViolation).order_by(security_violation_table.c.occurred_at)
        if since is not None:
            stmt = stmt.where(security_violation_table.c.occurred_at >= since)
        return self.session.execute(stmt).scalars().all()
