"""Cohort migration settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .env import env_flag, env_int, require_env_vars

DEFAULT_SAMPLE_SIZE = 4
DEFAULT_BILLING_COLUMN = "Stripe_Customer_ID"
DEFAULT_DELIMITER = ","


@dataclass(frozen=True, slots=True)
class MigrationSettings:
    """Typed migration configuration, built once at process start and passed down.

    ``enabled`` is the feature gate: every run mode fails closed while it is false.
    """

    enabled: bool
    cohort_tag: str = ""
    source_file: Path | None = None
    temporary_password: str | None = None
    sample_size: int = DEFAULT_SAMPLE_SIZE
    billing_column: str = DEFAULT_BILLING_COLUMN
    delimiter: str = DEFAULT_DELIMITER


def get_migration_settings() -> MigrationSettings:
    """Read migration settings from the environment.

    Cohort, source file and temporary credential are only required once the
    feature gate is switched on, so a disabled deployment needs no secrets.
    """

    enabled = env_flag("MIGRATION_ENABLED", default=False)
    sample_size = env_int("MIGRATION_SAMPLE_SIZE", default=DEFAULT_SAMPLE_SIZE)
    billing_column = os.getenv("MIGRATION_BILLING_COLUMN") or DEFAULT_BILLING_COLUMN
    delimiter = os.getenv("MIGRATION_DELIMITER") or DEFAULT_DELIMITER
    if not enabled:
        return MigrationSettings(
            enabled=False,
            sample_size=sample_size,
            billing_column=billing_column,
            delimiter=delimiter,
        )

    values = require_env_vars(
        ("MIGRATION_COHORT", "MIGRATION_SOURCE_FILE", "MIGRATION_TEMP_PASSWORD")
    )
    return MigrationSettings(
        enabled=True,
        cohort_tag=values["MIGRATION_COHORT"].strip(),
        source_file=Path(values["MIGRATION_SOURCE_FILE"]).expanduser(),
        temporary_password=values["MIGRATION_TEMP_PASSWORD"],
        sample_size=sample_size,
        billing_column=billing_column,
        delimiter=delimiter,
    )
