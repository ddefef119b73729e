"""SQLAlchemy mapping metadata for the cohortmigrate domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    Uuid,
    event,
    orm,
)
from sqlalchemy.orm import configure_mappers
from sqlalchemy.orm.attributes import set_attribute

from cohortmigrate.domain.model import (
    AccessTier,
    AuditAction,
    AuditEntry,
    AuditStatus,
    Identity,
    SecurityViolation,
    Snapshot,
    ViolationKind,
    normalize_email,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Identity store --------------------------------------------------------------

identity_table = Table(
    "identity",
    mapper_registry.metadata,
    Column("id", String(64), primary_key=True),
    Column("email", String, nullable=False, unique=True),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("billing_reference_id", String, nullable=True),
    Column("password_hash", String, nullable=True),
    Column("must_reset_password", Boolean, nullable=False, default=False),
    Column("password_set_method", String(64), nullable=True),
    Column("password_last_set_at", UTCDateTime(), nullable=True),
    Column("migration_cohort", String, nullable=True),
    Column("migration_source_file", String, nullable=True),
    Column("access_tier", Enum(AccessTier, native_enum=False), nullable=False),
    Column("is_first_login", Boolean, nullable=False, default=False),
    Column("has_set_password", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    # lookup keys folded in Python so matching does not depend on the database collation
    Column("email_key", String, nullable=True),
    Column("name_key", String, nullable=True),
    Index("ix_identity_migration_cohort", "migration_cohort"),
    Index("ix_identity_email_key", "email_key"),
    Index("ix_identity_name_key", "name_key"),
)

# Migration records -------------------------------------------------------------

migration_snapshot_table = Table(
    "migration_snapshot",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("identity_id", String(64), nullable=False),
    Column("cohort", String, nullable=False),
    Column("fields", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_migration_snapshot_identity_cohort", "identity_id", "cohort"),
)

migration_audit_log_table = Table(
    "migration_audit_log",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("cohort", String, nullable=False),
    Column("action", Enum(AuditAction, native_enum=False), nullable=False),
    Column("executed_by", String, nullable=False),
    Column("status", Enum(AuditStatus, native_enum=False), nullable=False),
    Column("records_processed", Integer, nullable=False, default=0),
    Column("records_successful", Integer, nullable=False, default=0),
    Column("records_errored", Integer, nullable=False, default=0),
    Column("payload", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("finished_at", UTCDateTime(), nullable=True),
    Index("ix_migration_audit_log_cohort", "cohort"),
)

security_violation_table = Table(
    "security_violation",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("operation", String, nullable=False),
    Column("kind", Enum(ViolationKind, native_enum=False), nullable=False),
    Column("actor", String, nullable=False),
    Column("prevented", Boolean, nullable=False),
    Column("detail", String, nullable=True),
)

# Not mapped: locks are read and written with Core statements only.
guard_lock_table = Table(
    "guard_lock",
    mapper_registry.metadata,
    Column("operation", String, primary_key=True),
    Column("lock_id", String(64), nullable=False),
    Column("process_id", Integer, nullable=False),
    Column("acquired_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)


def _stamp_lookup_keys(
    _mapper: orm.Mapper[Identity],
    _connection: Connection,
    target: Identity,
) -> None:
    set_attribute(target, "email_key", normalize_email(target.email))
    set_attribute(target, "name_key", target.normalized_name)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers (idempotent)."""

    log.info("Starting mappers")

    mapper_registry.map_imperatively(Identity, identity_table)
    event.listen(Identity, "before_insert", _stamp_lookup_keys)
    event.listen(Identity, "before_update", _stamp_lookup_keys)
    mapper_registry.map_imperatively(Snapshot, migration_snapshot_table)
    mapper_registry.map_imperatively(AuditEntry, migration_audit_log_table)
    mapper_registry.map_imperatively(SecurityViolation, security_violation_table)

    configure_mappers()
    return mapper_registry
