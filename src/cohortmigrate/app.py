"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from cohortmigrate.adapters.files import FileEmergencySwitch, FileLockStore
from cohortmigrate.adapters.hashing import WerkzeugPasswordHasher
from cohortmigrate.adapters.sqlalchemy import SqlAlchemyLockStore, SqlAlchemyUnitOfWork, startup
from cohortmigrate.adapters.sqlalchemy.unit_of_work import configured_engine, is_started
from cohortmigrate.config import (
    get_guard_settings,
    get_migration_settings,
    get_storage_config,
)
from cohortmigrate.domain import credentials
from cohortmigrate.domain.errors import FeatureDisabledError
from cohortmigrate.domain.guard import ExecutionGuard, SecurityMonitor
from cohortmigrate.domain.migration import MigrationPipeline, migration_operations
from cohortmigrate.domain.ports import MigrationUnitOfWork

if TYPE_CHECKING:
    from datetime import datetime

    from cohortmigrate.config import GuardSettings, MigrationSettings, StorageConfig
    from cohortmigrate.domain.guard import ConfirmationProvider
    from cohortmigrate.domain.model import (
        EmergencyDisableFlag,
        Identity,
        MigrationReport,
        SecurityViolation,
    )
    from cohortmigrate.domain.ports import LockStore, PasswordHasher

UnitOfWorkFactory = Callable[[], MigrationUnitOfWork]


log = getLogger(__name__)


@dataclass(slots=True)
class MigrationServices:
    """Domain services wired to the configured adapters."""

    settings: MigrationSettings
    pipeline: MigrationPipeline
    guard: ExecutionGuard
    monitor: SecurityMonitor
    emergency: FileEmergencySwitch
    hasher: PasswordHasher
    unit_of_work_factory: UnitOfWorkFactory


def _require_enabled(settings: MigrationSettings) -> None:
    # checked before startup() so a disabled gate never touches the store
    if not settings.enabled:
        raise FeatureDisabledError("Cohort migration is disabled (MIGRATION_ENABLED is off)")


def _default_unit_of_work() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def _build_lock_store(guard_settings: GuardSettings, storage: StorageConfig) -> LockStore:
    if guard_settings.lock_backend == "file":
        return FileLockStore(storage.lock_dir())
    engine = configured_engine()
    if engine is None:
        engine = startup()
    return SqlAlchemyLockStore(engine)


def build_services(
    *,
    settings: MigrationSettings | None = None,
    guard_settings: GuardSettings | None = None,
    storage: StorageConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    lock_store: LockStore | None = None,
    hasher: PasswordHasher | None = None,
) -> MigrationServices:
    """Assemble the pipeline, guard and monitor from configuration."""

    effective_settings = settings or get_migration_settings()
    effective_guard = guard_settings or get_guard_settings()
    effective_storage = storage or get_storage_config()
    effective_uow = unit_of_work_factory or _default_unit_of_work()
    effective_locks = lock_store or _build_lock_store(effective_guard, effective_storage)
    effective_hasher = hasher or WerkzeugPasswordHasher()

    monitor = SecurityMonitor(
        unit_of_work_factory=effective_uow,
        quarantined=effective_guard.quarantined_operations,
    )
    emergency = FileEmergencySwitch(effective_storage.emergency_sentinel_path())
    guard = ExecutionGuard(
        actor=effective_guard.actor,
        lock_store=effective_locks,
        emergency=emergency,
        monitor=monitor,
        confirmation_phrase=effective_guard.confirmation_phrase,
        lock_ttl_seconds=effective_guard.lock_ttl_seconds,
        operations=migration_operations(effective_guard.allowed_actors),
    )
    pipeline = MigrationPipeline(
        settings=effective_settings,
        unit_of_work_factory=effective_uow,
        hasher=effective_hasher,
        guard=guard,
        monitor=monitor,
    )
    return MigrationServices(
        settings=effective_settings,
        pipeline=pipeline,
        guard=guard,
        monitor=monitor,
        emergency=emergency,
        hasher=effective_hasher,
        unit_of_work_factory=effective_uow,
    )


def _services(settings: MigrationSettings | None) -> MigrationServices:
    effective_settings = settings or get_migration_settings()
    _require_enabled(effective_settings)
    return build_services(settings=effective_settings)


def classify_cohort(
    *,
    settings: MigrationSettings | None = None,
    services: MigrationServices | None = None,
) -> MigrationReport:
    """Classify every cohort record against the identity store without mutating it."""

    effective = services or _services(settings)
    log.info("Starting classify run for cohort %s", effective.settings.cohort_tag)
    return effective.pipeline.classify()


def run_sample_migration(
    *,
    confirm: ConfirmationProvider | None,
    settings: MigrationSettings | None = None,
    services: MigrationServices | None = None,
) -> MigrationReport:
    effective = services or _services(settings)
    log.info(
        "Starting sample run for cohort %s (size=%s)",
        effective.settings.cohort_tag,
        effective.settings.sample_size,
    )
    return effective.pipeline.run_sample(confirm=confirm)


def execute_migration(
    *,
    confirm: ConfirmationProvider | None,
    settings: MigrationSettings | None = None,
    services: MigrationServices | None = None,
) -> MigrationReport:
    effective = services or _services(settings)
    log.info("Starting full migration for cohort %s", effective.settings.cohort_tag)
    return effective.pipeline.execute(confirm=confirm)


def rollback_identity(
    identity_id: str,
    *,
    confirm: ConfirmationProvider | None,
    settings: MigrationSettings | None = None,
    services: MigrationServices | None = None,
) -> Identity:
    effective = services or _services(settings)
    return effective.pipeline.rollback(identity_id, confirm=confirm)


def verify_temporary_login(
    email: str,
    password: str,
    *,
    settings: MigrationSettings | None = None,
    services: MigrationServices | None = None,
) -> bool:
    effective = services or _services(settings)
    context = effective.pipeline.load()
    with effective.unit_of_work_factory() as uow:
        return credentials.verify_temporary_login(
            email,
            password,
            context=context,
            identities=uow.repositories.identities,
            hasher=effective.hasher,
        )


def complete_password_reset(
    identity_id: str,
    new_password: str,
    *,
    services: MigrationServices | None = None,
) -> Identity:
    effective = services or build_services()
    with effective.unit_of_work_factory() as uow:
        identity = credentials.complete_password_reset(
            identity_id,
            new_password,
            identities=uow.repositories.identities,
            hasher=effective.hasher,
        )
        uow.commit()
    return identity


def activate_emergency_disable(
    reason: str,
    *,
    actor: str | None = None,
    storage: StorageConfig | None = None,
) -> EmergencyDisableFlag:
    switch = FileEmergencySwitch((storage or get_storage_config()).emergency_sentinel_path())
    return switch.activate(reason=reason, actor=actor or get_guard_settings().actor)


def clear_emergency_disable(*, storage: StorageConfig | None = None) -> bool:
    switch = FileEmergencySwitch((storage or get_storage_config()).emergency_sentinel_path())
    return switch.clear()


def emergency_status(*, storage: StorageConfig | None = None) -> EmergencyDisableFlag | None:
    switch = FileEmergencySwitch((storage or get_storage_config()).emergency_sentinel_path())
    return switch.status()


def recent_violations(
    *,
    since: datetime | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[SecurityViolation]:
    effective_uow = unit_of_work_factory or _default_unit_of_work()
    with effective_uow() as uow:
        return list(uow.repositories.violations.list_since(since))
