"""Explicit cohort context threaded through matching and execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cohortmigrate.domain.model import normalize_email

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cohortmigrate.domain.model import CohortRecord, RowError


@dataclass(frozen=True, slots=True, kw_only=True)
class CohortContext:
    """The bounded, deduplicated record set authorized for one migration run.

    Membership is read-only once loaded; the executor re-checks it before every
    write so a record cannot be replayed against a different batch.
    """

    cohort_tag: str
    source_name: str
    records: tuple[CohortRecord, ...]
    duplicates_removed: int = 0
    row_errors: tuple[RowError, ...] = ()
    _by_email: dict[str, CohortRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_email: dict[str, CohortRecord] = {}
        for record in self.records:
            if record.normalized_email in by_email:
                raise ValueError(f"Duplicate cohort member: {record.normalized_email}")
            by_email[record.normalized_email] = record
        object.__setattr__(self, "_by_email", by_email)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[CohortRecord]:
        return iter(self.records)

    def is_in_cohort(self, email: str) -> bool:
        return normalize_email(email) in self._by_email

    def record_for(self, email: str) -> CohortRecord | None:
        return self._by_email.get(normalize_email(email))
