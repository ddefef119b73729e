from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from cohortmigrate.domain.cohort import load_cohort, load_cohort_file, parse_row
from cohortmigrate.domain.errors import CohortSourceError, RowValidationError
from tests.support.cohorts import HEADER, write_cohort

if TYPE_CHECKING:
    from pathlib import Path

    from cohortmigrate.domain.cohort import CohortContext


def _load(text: str, **kwargs: str) -> CohortContext:
    return load_cohort(io.StringIO(text), cohort_tag="c1", source_name="inline.csv", **kwargs)


def test_duplicate_emails_keep_first_occurrence(tmp_path: Path) -> None:
    path = write_cohort(
        tmp_path / "dup.csv",
        [
            ("First Dup", "dup@x.com", "cus_1", "2025-01-01"),
            ("Second Dup", " DUP@x.com ", "cus_2", "2025-01-02"),
            ("Other", "other@x.com", "cus_3", "2025-01-03"),
        ],
    )

    context = load_cohort_file(path, cohort_tag="c1")

    assert len(context) == 2
    assert context.duplicates_removed == 1
    kept = context.record_for("dup@x.com")
    assert kept is not None
    assert kept.display_name == "First Dup"
    assert kept.billing_reference_id == "cus_1"


def test_records_are_normalized_and_numbered() -> None:
    context = load_cohort(
        io.StringIO(
            "Customer Name,Customer Email,Stripe_Customer_ID,Signup Date\n"
            "  Jane   Q  Doe ,  Jane@X.com ,cus_1,2025-01-01\n"
        ),
        cohort_tag="c1",
        source_name="inline.csv",
    )

    (record,) = context.records
    assert record.normalized_email == "jane@x.com"
    assert record.normalized_name == "jane q doe"
    assert record.source_line == 2
    assert context.is_in_cohort("  JANE@x.com")
    assert context.source_name == "inline.csv"


def test_quoted_fields_may_contain_the_delimiter(tmp_path: Path) -> None:
    path = write_cohort(
        tmp_path / "quoted.csv",
        [("Doe, Jane", "jane@x.com", "cus_1", "2025-01-01")],
    )

    context = load_cohort_file(path, cohort_tag="c1")

    assert context.records[0].display_name == "Doe, Jane"
    assert context.records[0].billing_reference_id == "cus_1"


def test_byte_order_mark_on_header_is_tolerated(tmp_path: Path) -> None:
    path = tmp_path / "bom.csv"
    path.write_text(
        "\ufeff" + ",".join(HEADER) + "\nJane Doe,jane@x.com,cus_1,2025-01-01\n",
        encoding="utf-8",
    )

    context = load_cohort_file(path, cohort_tag="c1")

    assert len(context) == 1


def test_invalid_rows_are_reported_and_skipped() -> None:
    context = _load(
        "Customer Name,Customer Email,Stripe_Customer_ID,Signup Date\n"
        "Jane Doe,jane@x.com,cus_1,2025-01-01\n"
        "No Email,,cus_2,2025-01-01\n"
        "Bad Email,not-an-email,cus_3,2025-01-01\n"
        "No Ref,noref@x.com,,2025-01-01\n"
    )

    assert [record.normalized_email for record in context.records] == ["jane@x.com"]
    assert [error.line for error in context.row_errors] == [3, 4, 5]
    assert "email" in context.row_errors[1].message
    assert context.row_errors[2].values["Customer Email"] == "noref@x.com"


def test_custom_billing_column_and_delimiter() -> None:
    context = _load(
        "Customer Name;Customer Email;Billing_ID;Signup Date\nJane Doe;jane@x.com;b-1;2025-01-01\n",
        billing_column="Billing_ID",
        delimiter=";",
    )

    assert context.records[0].billing_reference_id == "b-1"


def test_missing_required_column_aborts_the_load() -> None:
    with pytest.raises(CohortSourceError, match="Stripe_Customer_ID"):
        _load("Customer Name,Customer Email,Signup Date\nJane,jane@x.com,2025-01-01\n")


def test_empty_source_aborts_the_load() -> None:
    with pytest.raises(CohortSourceError):
        _load("")


def test_missing_file_aborts_the_load(tmp_path: Path) -> None:
    with pytest.raises(CohortSourceError, match="not found"):
        load_cohort_file(tmp_path / "absent.csv", cohort_tag="c1")


def test_parse_row_raises_with_line_number() -> None:
    with pytest.raises(RowValidationError) as excinfo:
        parse_row(
            {
                "Customer Name": "Jane",
                "Customer Email": "jane@x.com",
                "Stripe_Customer_ID": "cus_1",
                "Signup Date": "   ",
            },
            line=7,
            billing_column="Stripe_Customer_ID",
        )

    assert excinfo.value.line == 7
    assert "signup_date" in excinfo.value.reason
