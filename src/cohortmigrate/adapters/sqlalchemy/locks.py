"""Guard locks stored as rows in the identity store."""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError

from cohortmigrate.adapters.sqlalchemy.mappings import guard_lock_table
from cohortmigrate.domain.errors import LockHeldError
from cohortmigrate.domain.model import GuardLock

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine, Row

log = logging.getLogger(__name__)


def _lock_from_row(row: Row[tuple[str, str, int, datetime, datetime]]) -> GuardLock:
    return GuardLock(
        operation=row.operation,
        lock_id=row.lock_id,
        process_id=row.process_id,
        acquired_at=row.acquired_at,
        expires_at=row.expires_at,
    )


class SqlAlchemyLockStore:
    """Acquire-if-absent locks keyed by operation name.

    Expired rows are deleted in the same transaction as the insert, so a lock
    left behind by a crashed run is reclaimed once its TTL has passed.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def acquire(self, operation: str, *, ttl_seconds: int) -> GuardLock:
        now = datetime.now(tz=UTC)
        lock = GuardLock(
            operation=operation,
            lock_id=uuid4().hex,
            process_id=os.getpid(),
            acquired_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        try:
            with self.engine.begin() as connection:
                reclaimed = connection.execute(
                    delete(guard_lock_table)
                    .where(guard_lock_table.c.operation == operation)
                    .where(guard_lock_table.c.expires_at <= now)
                ).rowcount
                if reclaimed:
                    log.warning("Reclaimed expired lock on %s", operation)
                connection.execute(
                    insert(guard_lock_table).values(
                        operation=lock.operation,
                        lock_id=lock.lock_id,
                        process_id=lock.process_id,
                        acquired_at=lock.acquired_at,
                        expires_at=lock.expires_at,
                    )
                )
        except IntegrityError as exc:
            holder = self.current(operation)
            detail = f" by pid {holder.process_id} until {holder.expires_at}" if holder else ""
            raise LockHeldError(f"{operation} is already locked{detail}") from exc
        log.info("Lock %s acquired on %s", lock.lock_id, operation)
        return lock

    def release(self, lock: GuardLock) -> None:
        with self.engine.begin() as connection:
            connection.execute(
                delete(guard_lock_table)
                .where(guard_lock_table.c.operation == lock.operation)
                .where(guard_lock_table.c.lock_id == lock.lock_id)
            )

    def current(self, operation: str) -> GuardLock | None:
        with self.engine.connect() as connection:
            row = connection.execute(
                select(guard_lock_table).where(guard_lock_table.c.operation == operation)
            ).first()
        return _lock_from_row(row) if row is not None else None
