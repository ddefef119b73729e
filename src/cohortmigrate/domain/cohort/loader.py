"""Cohort loading: parse the delimited source, validate, normalize, deduplicate.

The loader never touches the identity store. Malformed rows are skipped and
reported as ``RowError`` entries; only a missing source or a header that does
not carry the fixed columns aborts the load.
"""

from __future__ import annotations

import csv
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cohortmigrate.domain.errors import CohortSourceError, RowValidationError
from cohortmigrate.domain.model import CohortRecord, RowError

from .context import CohortContext
from .schema import (
    CUSTOMER_EMAIL_COLUMN,
    CUSTOMER_NAME_COLUMN,
    SIGNUP_DATE_COLUMN,
    CohortRowModel,
    describe_validation_error,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_BILLING_COLUMN = "Stripe_Customer_ID"


def required_columns(billing_column: str = DEFAULT_BILLING_COLUMN) -> tuple[str, ...]:
    return (CUSTOMER_NAME_COLUMN, CUSTOMER_EMAIL_COLUMN, billing_column, SIGNUP_DATE_COLUMN)


def _sanitize_header(header: str | None) -> str:
    return (header or "").strip().lstrip("\ufeff")


def _check_header(fieldnames: Sequence[str] | None, columns: tuple[str, ...]) -> None:
    if not fieldnames:
        raise CohortSourceError("Cohort source is empty or has no header row")
    present = {_sanitize_header(name) for name in fieldnames}
    missing = [column for column in columns if column not in present]
    if missing:
        raise CohortSourceError(f"Cohort source is missing required columns: {', '.join(missing)}")


def parse_row(row: dict[str, str | None], *, line: int, billing_column: str) -> CohortRecord:
    """Validate one raw row; raise ``RowValidationError`` if it does not fit the schema."""

    try:
        model = CohortRowModel.model_validate(
            {
                "display_name": row.get(CUSTOMER_NAME_COLUMN),
                "email": row.get(CUSTOMER_EMAIL_COLUMN),
                "billing_reference_id": row.get(billing_column),
                "signup_date": row.get(SIGNUP_DATE_COLUMN),
            }
        )
    except ValidationError as exc:
        raise RowValidationError(line, describe_validation_error(exc)) from exc
    return CohortRecord(
        display_name=model.display_name,
        email=model.email,
        billing_reference_id=model.billing_reference_id,
        signup_date=model.signup_date,
        source_line=line,
    )


def load_cohort(
    source: Iterable[str],
    *,
    cohort_tag: str,
    source_name: str,
    billing_column: str = DEFAULT_BILLING_COLUMN,
    delimiter: str = ",",
) -> CohortContext:
    """Build a cohort context from delimited text with a header row."""

    columns = required_columns(billing_column)
    reader = csv.DictReader(source, delimiter=delimiter)
    _check_header(reader.fieldnames, columns)
    reader.fieldnames = [_sanitize_header(name) for name in reader.fieldnames or ()]

    records: list[CohortRecord] = []
    row_errors: list[RowError] = []
    seen: set[str] = set()
    duplicates_removed = 0

    for row in reader:
        line = reader.line_num
        try:
            record = parse_row(row, line=line, billing_column=billing_column)
        except RowValidationError as exc:
            log.warning("Skipping invalid row %s: %s", line, exc.reason)
            row_errors.append(
                RowError(
                    line=line,
                    message=exc.reason,
                    values={key: value for key, value in row.items() if key in columns},
                )
            )
            continue

        if record.normalized_email in seen:
            duplicates_removed += 1
            log.info("Duplicate email removed: %s (line %s)", record.normalized_email, line)
            continue
        seen.add(record.normalized_email)
        records.append(record)

    log.info(
        "Loaded cohort %s from %s: %s records, %s duplicates removed, %s rows rejected",
        cohort_tag,
        source_name,
        len(records),
        duplicates_removed,
        len(row_errors),
    )
    return CohortContext(
        cohort_tag=cohort_tag,
        source_name=source_name,
        records=tuple(records),
        duplicates_removed=duplicates_removed,
        row_errors=tuple(row_errors),
    )


def load_cohort_file(
    path: Path,
    *,
    cohort_tag: str,
    billing_column: str = DEFAULT_BILLING_COLUMN,
    delimiter: str = ",",
) -> CohortContext:
    if not path.is_file():
        raise CohortSourceError(f"Cohort source not found: {path}")
    with path.open(newline="", encoding="utf-8-sig") as handle:
        return load_cohort(
            handle,
            cohort_tag=cohort_tag,
            source_name=path.name,
            billing_column=billing_column,
            delimiter=delimiter,
        )
