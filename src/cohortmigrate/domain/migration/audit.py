"""Run-level audit trail.

Every run that passes the feature gate and the guard produces exactly one
``AuditEntry``. The entry is opened before the first record is touched,
updated as each record completes, and closed with the final counts, each step
in its own unit of work so a crash mid-run still leaves a ``running`` entry
behind.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cohortmigrate.domain.model import AuditEntry, AuditStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from cohortmigrate.domain.model import AuditAction, MatchResult, MigrationReport
    from cohortmigrate.domain.ports import MigrationUnitOfWork

log = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, unit_of_work_factory: Callable[[], MigrationUnitOfWork]) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def open_run(self, *, cohort: str, action: AuditAction, actor: str) -> UUID:
        entry = AuditEntry(cohort=cohort, action=action, executed_by=actor)
        entry.payload = {"results": []}
        with self._unit_of_work_factory() as uow:
            uow.repositories.audit_entries.add(entry)
            uow.commit()
        log.info("Audit entry %s opened: %s on %s by %s", entry.id, action.value, cohort, actor)
        return entry.id

    def record(self, entry_id: UUID, result: MatchResult) -> None:
        """Append one finished record to the entry's payload."""

        with self._unit_of_work_factory() as uow:
            entry = self._require(uow, entry_id)
            results = [*entry.payload.get("results", []), result.to_dict()]
            entry.records_processed += 1
            if result.ok:
                entry.records_successful += 1
            else:
                entry.records_errored += 1
            # reassign so JSON column changes are detected
            entry.payload = {**entry.payload, "results": results}
            uow.commit()

    def note(self, entry_id: UUID, **details: object) -> None:
        """Merge free-form details (e.g. a rollback target) into the payload."""

        with self._unit_of_work_factory() as uow:
            entry = self._require(uow, entry_id)
            entry.payload = {**entry.payload, **details}
            uow.commit()

    def close(
        self,
        entry_id: UUID,
        *,
        report: MigrationReport | None = None,
        status: AuditStatus = AuditStatus.COMPLETED,
        error: str | None = None,
    ) -> AuditEntry:
        with self._unit_of_work_factory() as uow:
            entry = self._require(uow, entry_id)
            payload = dict(entry.payload)
            if report is not None:
                entry.records_processed = report.total_records
                entry.records_successful = report.successful
                entry.records_errored = report.errored
                payload.update(report.to_dict())
            if error is not None:
                payload["error"] = error
            entry.payload = payload
            entry.status = status
            entry.finished_at = datetime.now(tz=UTC)
            uow.commit()
        log.info(
            "Audit entry %s closed with status %s (%s processed, %s errored)",
            entry_id,
            status.value,
            entry.records_processed,
            entry.records_errored,
        )
        return entry

    @staticmethod
    def _require(uow: MigrationUnitOfWork, entry_id: UUID) -> AuditEntry:
        entry = uow.repositories.audit_entries.get(entry_id)
        if entry is None:
            raise LookupError(f"Audit entry {entry_id} not found")
        return entry
