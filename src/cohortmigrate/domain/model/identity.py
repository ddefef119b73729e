"""Identity records as held by the external identity store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from .enums import AccessTier

if TYPE_CHECKING:
    from datetime import datetime


# Fields a migration may overwrite; snapshots capture exactly these.
MUTABLE_FIELDS: Final[tuple[str, ...]] = (
    "billing_reference_id",
    "password_hash",
    "must_reset_password",
    "password_set_method",
    "password_last_set_at",
    "migration_cohort",
    "migration_source_file",
    "is_first_login",
    "has_set_password",
)


def new_identity_id() -> str:
    return uuid4().hex


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_name(name: str) -> str:
    return " ".join(name.lower().split())


@dataclass(eq=False, kw_only=True)
class Identity:
    id: str = field(default_factory=new_identity_id)
    email: str
    first_name: str | None = None
    last_name: str | None = None
    billing_reference_id: str | None = None

    password_hash: str | None = None
    must_reset_password: bool = False
    password_set_method: str | None = None
    password_last_set_at: datetime | None = None

    migration_cohort: str | None = None
    migration_source_file: str | None = None

    access_tier: AccessTier = AccessTier.FREE
    is_first_login: bool = False
    has_set_password: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.full_name)

    def migrated_in(self, cohort_tag: str) -> bool:
        return self.migration_cohort == cohort_tag


def split_display_name(display_name: str) -> tuple[str, str | None]:
    """Split a display name into first name and the remainder as last name."""

    parts = display_name.split()
    if not parts:
        return display_name, None
    first, *rest = parts
    return first, " ".join(rest) or None
