"""Cohort migration run modes.

``classify`` reads only. ``run_sample`` and ``execute`` pass through the
execution guard and then process one record at a time, each in its own unit
of work: match, snapshot, mutate, commit, then append to the audit entry. A
failing record rolls back its own unit of work and the batch continues.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cohortmigrate.domain.cohort import load_cohort_file
from cohortmigrate.domain.errors import (
    AuthorizationError,
    CohortSourceError,
    FeatureDisabledError,
    MigrationError,
)
from cohortmigrate.domain.guard import ProtectedOperation
from cohortmigrate.domain.matching import classify_cohort, classify_record, executable
from cohortmigrate.domain.model import (
    AuditAction,
    AuditStatus,
    MatchType,
    MigrationReport,
    RunMode,
)

from .audit import AuditLog
from .executor import MigrationExecutor
from .snapshots import rollback_identity

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from cohortmigrate.config import MigrationSettings
    from cohortmigrate.domain.cohort import CohortContext
    from cohortmigrate.domain.guard import (
        ConfirmationProvider,
        ExecutionGuard,
        GuardPermit,
        SecurityMonitor,
    )
    from cohortmigrate.domain.model import CohortRecord, Identity, MatchResult
    from cohortmigrate.domain.ports import MigrationUnitOfWork, PasswordHasher

log = logging.getLogger(__name__)

SAMPLE_OPERATION = "cohort-migration.sample"
EXECUTE_OPERATION = "cohort-migration.execute"
ROLLBACK_OPERATION = "cohort-migration.rollback"

_OPERATIONS: dict[RunMode, str] = {
    RunMode.SMALL_SAMPLE: SAMPLE_OPERATION,
    RunMode.EXECUTE: EXECUTE_OPERATION,
}


def migration_operations(allowed_actors: Iterable[str]) -> tuple[ProtectedOperation, ...]:
    """Guard registry entries for the destructive migration operations."""

    actors = frozenset(allowed_actors)
    return (
        ProtectedOperation(
            name=SAMPLE_OPERATION,
            destructive=True,
            allowed_actors=actors,
            description="Migrate a small sample covering each match category",
        ),
        ProtectedOperation(
            name=EXECUTE_OPERATION,
            destructive=True,
            allowed_actors=actors,
            description="Migrate every record of the cohort into the identity store",
        ),
        ProtectedOperation(
            name=ROLLBACK_OPERATION,
            destructive=True,
            allowed_actors=actors,
            description="Restore one identity from its most recent migration snapshot",
        ),
    )


def select_sample(results: Sequence[MatchResult], size: int) -> list[MatchResult]:
    """Pick up to ``size`` results: the first of each match type, then file order.

    The selection is returned in file order.
    """

    if size <= 0:
        return []
    chosen: list[int] = []
    for match_type in MatchType:
        if len(chosen) >= size:
            break
        index = next(
            (i for i, result in enumerate(results) if result.match_type is match_type),
            None,
        )
        if index is not None:
            chosen.append(index)
    for index in range(len(results)):
        if len(chosen) >= size:
            break
        if index not in chosen:
            chosen.append(index)
    return [results[index] for index in sorted(chosen)]


class MigrationPipeline:
    def __init__(
        self,
        *,
        settings: MigrationSettings,
        unit_of_work_factory: Callable[[], MigrationUnitOfWork],
        hasher: PasswordHasher,
        guard: ExecutionGuard,
        monitor: SecurityMonitor,
    ) -> None:
        self.settings = settings
        self._unit_of_work_factory = unit_of_work_factory
        self._hasher = hasher
        self.guard = guard
        self._monitor = monitor
        self.audit = AuditLog(unit_of_work_factory)

    def _require_enabled(self) -> None:
        if not self.settings.enabled:
            raise FeatureDisabledError("Cohort migration is disabled (MIGRATION_ENABLED is off)")

    def load(self) -> CohortContext:
        self._require_enabled()
        if self.settings.source_file is None:
            raise CohortSourceError("No cohort source file configured")
        return load_cohort_file(
            self.settings.source_file,
            cohort_tag=self.settings.cohort_tag,
            billing_column=self.settings.billing_column,
            delimiter=self.settings.delimiter,
        )

    def classify(self) -> MigrationReport:
        """Classify the whole cohort without touching the store."""

        context = self.load()
        with self._unit_of_work_factory() as uow:
            results = classify_cohort(context, uow.repositories.identities)

        entry_id = self.audit.open_run(
            cohort=context.cohort_tag,
            action=AuditAction.CLASSIFY,
            actor=self.guard.actor,
        )
        report = MigrationReport.from_results(
            mode=RunMode.CLASSIFY,
            cohort=context.cohort_tag,
            results=results,
            duplicates_removed=context.duplicates_removed,
            row_errors=list(context.row_errors),
            audit_entry_id=entry_id,
        )
        self.audit.close(entry_id, report=report)
        log.info(report.summary)
        return report

    def run_sample(self, *, confirm: ConfirmationProvider | None = None) -> MigrationReport:
        return self._run_mutating(RunMode.SMALL_SAMPLE, confirm)

    def execute(self, *, confirm: ConfirmationProvider | None = None) -> MigrationReport:
        return self._run_mutating(RunMode.EXECUTE, confirm)

    def _run_mutating(
        self,
        mode: RunMode,
        confirm: ConfirmationProvider | None,
    ) -> MigrationReport:
        self._require_enabled()
        self.guard.ensure_not_disabled(_OPERATIONS[mode])
        context = self.load()
        records = list(context.records)
        if mode is RunMode.SMALL_SAMPLE:
            with self._unit_of_work_factory() as uow:
                preview = classify_cohort(context, uow.repositories.identities)
            sample = select_sample(preview, self.settings.sample_size)
            records = [result.record for result in sample]
            log.info("Sample selected %s of %s records", len(records), len(context))

        return self.guard.run(
            _OPERATIONS[mode],
            lambda permit: self.migrate(context, records, mode=mode, permit=permit),
            confirm=confirm,
        )

    def migrate(
        self,
        context: CohortContext,
        records: Sequence[CohortRecord],
        *,
        mode: RunMode,
        permit: GuardPermit | None,
    ) -> MigrationReport:
        """Mutate ``records``; only callable with a permit issued for this mode."""

        operation = _OPERATIONS.get(mode)
        if operation is None:
            raise MigrationError(f"{mode.value} is not a mutating run mode")
        if permit is None or permit.operation != operation:
            actor = permit.actor if permit is not None else self.guard.actor
            self._monitor.report_unguarded_attempt(operation, actor)
            raise AuthorizationError(f"{operation} must run inside the execution guard")
        if not self.settings.temporary_password:
            raise MigrationError("No temporary credential configured")

        executor = MigrationExecutor(
            context=context,
            credential_hash=self._hasher.hash(self.settings.temporary_password),
        )
        entry_id = self.audit.open_run(
            cohort=context.cohort_tag,
            action=mode.audit_action,
            actor=permit.actor,
        )
        results: list[MatchResult] = []
        try:
            for record in records:
                result = self._migrate_record(record, context, executor)
                results.append(result)
                self.audit.record(entry_id, result)
        except Exception as exc:
            self.audit.close(entry_id, status=AuditStatus.FAILED, error=str(exc))
            raise

        report = MigrationReport.from_results(
            mode=mode,
            cohort=context.cohort_tag,
            results=results,
            duplicates_removed=context.duplicates_removed,
            row_errors=list(context.row_errors),
            audit_entry_id=entry_id,
        )
        self.audit.close(entry_id, report=report)
        log.info(report.summary)
        return report

    def _migrate_record(
        self,
        record: CohortRecord,
        context: CohortContext,
        executor: MigrationExecutor,
    ) -> MatchResult:
        with self._unit_of_work_factory() as uow:
            result = classify_record(record, uow.repositories.identities, context)
            if result.identity is not None:
                # read before a rollback expires the loaded identity
                result.affected_identity_id = result.identity.id
            if not executable(result):
                log.warning("Line %s skipped: %s", record.source_line, "; ".join(result.errors))
                return result
            try:
                executor.apply(result, uow.repositories)
                uow.commit()
            except MigrationError as exc:
                uow.rollback()
                log.warning("Line %s failed: %s", record.source_line, exc)
                result.fail(str(exc))
            except Exception as exc:
                uow.rollback()
                log.exception("Line %s failed", record.source_line)
                result.fail(f"Mutation failed: {exc}")
        return result

    def rollback(
        self,
        identity_id: str,
        *,
        confirm: ConfirmationProvider | None = None,
    ) -> Identity:
        """Restore one identity from its most recent snapshot for the configured cohort."""

        self._require_enabled()
        self.guard.ensure_not_disabled(ROLLBACK_OPERATION)
        cohort = self.settings.cohort_tag

        def _rollback(permit: GuardPermit) -> Identity:
            entry_id = self.audit.open_run(
                cohort=cohort,
                action=AuditAction.ROLLBACK,
                actor=permit.actor,
            )
            self.audit.note(entry_id, identityId=identity_id)
            try:
                with self._unit_of_work_factory() as uow:
                    identity = rollback_identity(
                        identity_id,
                        cohort=cohort,
                        repositories=uow.repositories,
                    )
                    uow.commit()
            except Exception as exc:
                self.audit.close(entry_id, status=AuditStatus.FAILED, error=str(exc))
                raise
            self.audit.close(entry_id)
            return identity

        return self.guard.run(ROLLBACK_OPERATION, _rollback, confirm=confirm)
