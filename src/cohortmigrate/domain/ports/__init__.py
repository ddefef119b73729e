"""Domain ports: persistence, locking, hashing and safety collaborators."""

from __future__ import annotations

from .persistence import (
    AuditRepository,
    IdentityRepository,
    LockStore,
    Repository,
    SnapshotRepository,
    ViolationRepository,
)
from .security import EmergencySwitch, PasswordHasher
from .unit_of_work import (
    MigrationRepositories,
    MigrationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AuditRepository",
    "EmergencySwitch",
    "IdentityRepository",
    "LockStore",
    "MigrationRepositories",
    "MigrationUnitOfWork",
    "PasswordHasher",
    "Repository",
    "RepositoryCollection",
    "SnapshotRepository",
    "UnitOfWork",
    "ViolationRepository",
]
