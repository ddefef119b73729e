"""File-backed safety collaborators: the emergency sentinel and a lock directory."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from cohortmigrate.domain.errors import LockHeldError
from cohortmigrate.domain.model import EmergencyDisableFlag, GuardLock

if TYPE_CHECKING:
    from pathlib import Path

log = logging.getLogger(__name__)


class FileEmergencySwitch:
    """Emergency disable backed by a sentinel file.

    While the file exists every destructive run is blocked.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def is_active(self) -> bool:
        return self.path.exists()

    def status(self) -> EmergencyDisableFlag | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            data = json.loads(raw)
            return EmergencyDisableFlag(
                reason=str(data["reason"]),
                disabled_by=str(data["disabled_by"]),
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (ValueError, KeyError, TypeError):
            # an unreadable sentinel still blocks
            log.warning("Emergency sentinel %s is not valid JSON; treating as active", self.path)
            modified = datetime.fromtimestamp(self.path.stat().st_mtime, tz=UTC)
            return EmergencyDisableFlag(
                reason=raw.strip() or "unknown",
                disabled_by="unknown",
                created_at=modified,
            )

    def activate(self, *, reason: str, actor: str) -> EmergencyDisableFlag:
        flag = EmergencyDisableFlag(
            reason=reason,
            disabled_by=actor,
            created_at=datetime.now(tz=UTC),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "reason": flag.reason,
            "disabled_by": flag.disabled_by,
            "created_at": flag.created_at.isoformat(),
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        log.critical("Emergency disable activated by %s: %s", actor, reason)
        return flag

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        log.warning("Emergency disable cleared")
        return True


class FileLockStore:
    """One lock file per operation, created with ``O_EXCL`` so only one run wins."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, operation: str) -> Path:
        safe_name = "".join(char if char.isalnum() or char in "-_." else "_" for char in operation)
        return self.directory / f"{safe_name}.lock"

    def acquire(self, operation: str, *, ttl_seconds: int) -> GuardLock:
        now = datetime.now(tz=UTC)
        lock = GuardLock(
            operation=operation,
            lock_id=uuid4().hex,
            process_id=os.getpid(),
            acquired_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        path = self._path(operation)
        self.directory.mkdir(parents=True, exist_ok=True)

        existing = self.current(operation)
        if existing is not None and existing.expired(now):
            log.warning("Reclaiming expired lock file %s", path)
            path.unlink(missing_ok=True)

        try:
            with path.open("x", encoding="utf-8") as handle:
                json.dump(
                    {
                        "operation": lock.operation,
                        "lock_id": lock.lock_id,
                        "process_id": lock.process_id,
                        "acquired_at": lock.acquired_at.isoformat(),
                        "expires_at": lock.expires_at.isoformat(),
                    },
                    handle,
                    indent=2,
                )
        except FileExistsError as exc:
            raise LockHeldError(f"{operation} is already locked ({path})") from exc
        log.info("Lock %s acquired on %s", lock.lock_id, operation)
        return lock

    def release(self, lock: GuardLock) -> None:
        current = self.current(lock.operation)
        if current is not None and current.lock_id != lock.lock_id:
            log.warning("Lock on %s is held by %s; not releasing", lock.operation, current.lock_id)
            return
        self._path(lock.operation).unlink(missing_ok=True)

    def current(self, operation: str) -> GuardLock | None:
        path = self._path(operation)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        return GuardLock(
            operation=str(data["operation"]),
            lock_id=str(data["lock_id"]),
            process_id=int(data["process_id"]),
            acquired_at=datetime.fromisoformat(data["acquired_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )
