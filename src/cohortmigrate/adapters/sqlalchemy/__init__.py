"""SQLAlchemy adapter package for cohortmigrate."""

from __future__ import annotations

from .locks import SqlAlchemyLockStore
from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyIdentityRepository,
    SqlAlchemySnapshotRepository,
    SqlAlchemyViolationRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyAuditRepository",
    "SqlAlchemyIdentityRepository",
    "SqlAlchemyLockStore",
    "SqlAlchemySnapshotRepository",
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyViolationRepository",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
