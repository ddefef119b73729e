"""Execution guard settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final, Literal

from .env import env_int, env_list
from .errors import ConfigurationError

type LockBackend = Literal["database", "file"]

DEFAULT_CONFIRMATION_PHRASE: Final[str] = "AUTHORIZED_EXECUTION_WITH_FULL_RESPONSIBILITY"
DEFAULT_LOCK_TTL_SECONDS: Final[int] = 3600
DEFAULT_QUARANTINE: Final[tuple[str, ...]] = (
    "populate-course-content",
    "bulk-content-operations",
    "migrate-database",
)


@dataclass(frozen=True, slots=True)
class GuardSettings:
    allowed_actors: tuple[str, ...] = ()
    actor: str = "unknown"
    confirmation_phrase: str = DEFAULT_CONFIRMATION_PHRASE
    lock_backend: LockBackend = "database"
    lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    quarantined_operations: tuple[str, ...] = DEFAULT_QUARANTINE


def get_guard_settings() -> GuardSettings:
    backend = (os.getenv("MIGRATION_LOCK_BACKEND") or "database").strip().lower()
    if backend not in ("database", "file"):
        raise ConfigurationError(f"Unsupported lock backend: {backend}")
    quarantine = env_list("MIGRATION_QUARANTINED_OPERATIONS") or DEFAULT_QUARANTINE
    return GuardSettings(
        allowed_actors=env_list("MIGRATION_ALLOWED_ACTORS"),
        actor=os.getenv("MIGRATION_ACTOR") or os.getenv("USER_EMAIL") or "unknown",
        confirmation_phrase=os.getenv("MIGRATION_CONFIRMATION_PHRASE")
        or DEFAULT_CONFIRMATION_PHRASE,
        lock_backend="file" if backend == "file" else "database",
        lock_ttl_seconds=env_int("MIGRATION_LOCK_TTL_SECONDS", default=DEFAULT_LOCK_TTL_SECONDS),
        quarantined_operations=quarantine,
    )
