"""Per-record match results and the aggregated run report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from .enums import ExecutionOutcome

if TYPE_CHECKING:
    from .cohort import CohortRecord, RowError
    from .enums import IntendedAction, MatchType, RunMode
    from .identity import Identity


@dataclass(slots=True, kw_only=True)
class MatchResult:
    """Classification of one record; lives only for the duration of a run."""

    record: CohortRecord
    match_type: MatchType
    intended_action: IntendedAction
    identity: Identity | None = None
    errors: list[str] = field(default_factory=list)
    outcome: ExecutionOutcome = ExecutionOutcome.NOT_EXECUTED
    affected_identity_id: str | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def fail(self, message: str) -> None:
        self.errors.append(message)
        self.outcome = ExecutionOutcome.FAILED

    def to_dict(self) -> dict[str, object]:
        identity_id = self.affected_identity_id
        if identity_id is None and self.identity is not None:
            identity_id = self.identity.id
        return {
            "record": self.record.to_dict(),
            "matchType": self.match_type.value,
            "intendedAction": self.intended_action.value,
            "identityId": identity_id,
            "outcome": self.outcome.value,
            "errors": list(self.errors),
        }


@dataclass(slots=True, kw_only=True)
class MigrationReport:
    """Stable result contract returned by every run mode."""

    mode: RunMode
    cohort: str
    total_records: int
    successful: int
    errored: int
    duplicates_removed: int
    results: list[MatchResult]
    row_errors: list[RowError] = field(default_factory=list)
    audit_entry_id: UUID | None = None

    @classmethod
    def from_results(
        cls,
        *,
        mode: RunMode,
        cohort: str,
        results: list[MatchResult],
        duplicates_removed: int,
        row_errors: list[RowError] | None = None,
        audit_entry_id: UUID | None = None,
    ) -> MigrationReport:
        errored = sum(1 for result in results if not result.ok)
        return cls(
            mode=mode,
            cohort=cohort,
            total_records=len(results),
            successful=len(results) - errored,
            errored=errored,
            duplicates_removed=duplicates_removed,
            results=results,
            row_errors=list(row_errors or ()),
            audit_entry_id=audit_entry_id,
        )

    @property
    def rows_rejected(self) -> int:
        return len(self.row_errors)

    @property
    def summary(self) -> str:
        return (
            f"{self.mode.value} run for cohort {self.cohort}: {self.total_records} records, "
            f"{self.successful} successful, {self.errored} errored, "
            f"{self.duplicates_removed} duplicates removed, {self.rows_rejected} rows rejected"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "totalRecords": self.total_records,
            "successful": self.successful,
            "errored": self.errored,
            "duplicatesRemoved": self.duplicates_removed,
            "results": [result.to_dict() for result in self.results],
            "mode": self.mode.value,
            "cohort": self.cohort,
            "rowsRejected": self.rows_rejected,
            "rowErrors": [error.to_dict() for error in self.row_errors],
            "summary": self.summary,
            "auditEntryId": str(self.audit_entry_id) if self.audit_entry_id else None,
        }
