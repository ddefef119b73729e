"""Pydantic model describing one cohort source row."""

from __future__ import annotations

import re
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CUSTOMER_NAME_COLUMN: Final[str] = "Customer Name"
CUSTOMER_EMAIL_COLUMN: Final[str] = "Customer Email"
SIGNUP_DATE_COLUMN: Final[str] = "Signup Date"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")


class CohortRowModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    display_name: str = Field(min_length=1)
    email: str
    billing_reference_id: str = Field(min_length=1)
    signup_date: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not _EMAIL_PATTERN.match(value):
            raise ValueError(f"not a valid email address: {value!r}")
        return value


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into one line suitable for a per-row report."""

    parts: list[str] = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "row"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
