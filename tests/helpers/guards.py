"""Fakes for the guard's collaborators: locks, emergency switch, hashing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Final

from cohortmigrate.domain.errors import LockHeldError
from cohortmigrate.domain.model import EmergencyDisableFlag, GuardLock

PHRASE: Final[str] = "I UNDERSTAND"
OPERATOR: Final[str] = "ops@example.com"


class FakeLockStore:
    def __init__(self) -> None:
        self.locks: dict[str, GuardLock] = {}
        self.acquired: list[GuardLock] = []
        self.released: list[GuardLock] = []

    def acquire(self, operation: str, *, ttl_seconds: int) -> GuardLock:
        now = datetime.now(tz=UTC)
        existing = self.locks.get(operation)
        if existing is not None and not existing.expired(now):
            raise LockHeldError(f"{operation} is already locked")
        lock = GuardLock(
            operation=operation,
            lock_id=f"lock-{len(self.acquired) + 1}",
            process_id=1,
            acquired_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        self.locks[operation] = lock
        self.acquired.append(lock)
        return lock

    def release(self, lock: GuardLock) -> None:
        self.released.append(lock)
        if self.locks.get(lock.operation) == lock:
            del self.locks[lock.operation]

    def current(self, operation: str) -> GuardLock | None:
        return self.locks.get(operation)


class FakeEmergencySwitch:
    def __init__(self, flag: EmergencyDisableFlag | None = None) -> None:
        self.flag = flag

    def is_active(self) -> bool:
        return self.flag is not None

    def status(self) -> EmergencyDisableFlag | None:
        return self.flag

    def activate(self, *, reason: str, actor: str) -> EmergencyDisableFlag:
        self.flag = EmergencyDisableFlag(
            reason=reason,
            disabled_by=actor,
            created_at=datetime.now(tz=UTC),
        )
        return self.flag

    def clear(self) -> bool:
        active = self.flag is not None
        self.flag = None
        return active


class FakeHasher:
    """Reversible stand-in so tests can assert on the stored credential."""

    def __init__(self) -> None:
        self.calls = 0

    def hash(self, password: str) -> str:
        self.calls += 1
        return f"hashed:{password}"

    def verify(self, password: str, hashed: str) -> bool:
        return hashed == f"hashed:{password}"
