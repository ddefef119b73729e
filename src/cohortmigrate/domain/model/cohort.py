"""Cohort records: the externally supplied batch being migrated."""

from __future__ import annotations

from dataclasses import dataclass, field

from .identity import normalize_email, normalize_name


@dataclass(frozen=True, slots=True, kw_only=True)
class CohortRecord:
    display_name: str
    email: str
    billing_reference_id: str
    signup_date: str
    source_line: int = 0
    normalized_email: str = field(init=False)
    normalized_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "normalized_email", normalize_email(self.email))
        object.__setattr__(self, "normalized_name", normalize_name(self.display_name))

    def to_dict(self) -> dict[str, object]:
        return {
            "displayName": self.display_name,
            "email": self.email,
            "billingReferenceId": self.billing_reference_id,
            "signupDate": self.signup_date,
            "normalizedEmail": self.normalized_email,
            "normalizedName": self.normalized_name,
            "sourceLine": self.source_line,
        }


@dataclass(frozen=True, slots=True)
class RowError:
    """A source row that failed validation and was skipped."""

    line: int
    message: str
    values: dict[str, str | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"line": self.line, "message": self.message, "values": dict(self.values)}
