"""Passive security monitor.

The monitor never blocks on its own account: it answers quarantine queries
and records violations. Failing to persist a violation is logged and does not
interrupt the caller.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from cohortmigrate.domain.model import SecurityViolation, ViolationKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cohortmigrate.domain.ports import MigrationUnitOfWork

log = logging.getLogger(__name__)

_SCRIPT_SUFFIXES = frozenset({".py", ".sh", ".js", ".ts"})


def _basename(name: str) -> str:
    return PurePosixPath(name.replace("\\", "/")).name


def _stem(basename: str) -> str:
    path = PurePosixPath(basename)
    return path.stem if path.suffix in _SCRIPT_SUFFIXES else basename


class SecurityMonitor:
    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], MigrationUnitOfWork] | None = None,
        quarantined: Iterable[str] = (),
        baseline: Iterable[str] | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self.quarantined = frozenset(_basename(name) for name in quarantined)
        self._quarantined_stems = frozenset(_stem(name) for name in self.quarantined)
        self._baseline = frozenset(baseline) if baseline is not None else None
        self.recorded: list[SecurityViolation] = []

    def is_quarantined(self, name: str) -> bool:
        basename = _basename(name)
        if basename in self.quarantined:
            return True
        # "wipe.py" and "wipe" name the same script
        return _stem(basename) in self._quarantined_stems

    def should_block_execution(self, name: str, *, actor: str = "unknown") -> bool:
        if not self.is_quarantined(name):
            return False
        log.error("Blocked execution of quarantined operation %s", name)
        self.record_violation(
            operation=name,
            kind=ViolationKind.QUARANTINED_EXECUTION_ATTEMPT,
            actor=actor,
            prevented=True,
        )
        return True

    def report_unguarded_attempt(self, operation: str, actor: str) -> SecurityViolation:
        return self.record_violation(
            operation=operation,
            kind=ViolationKind.UNGUARDED_DESTRUCTIVE_CALL,
            actor=actor,
            prevented=True,
            detail="destructive path invoked without a guard permit",
        )

    def check_registry(
        self,
        names: Iterable[str],
        *,
        actor: str = "unknown",
    ) -> list[SecurityViolation]:
        """Compare runnable operations with the last known set and record any drift.

        The first call without a baseline only captures one.
        """

        current = frozenset(names)
        baseline, self._baseline = self._baseline, current
        if baseline is None or baseline == current:
            return []

        violations: list[SecurityViolation] = []
        for name in sorted(current - baseline):
            violations.append(
                self.record_violation(
                    operation=name,
                    kind=ViolationKind.REGISTRY_CHANGED,
                    actor=actor,
                    prevented=False,
                    detail="operation added",
                )
            )
        for name in sorted(baseline - current):
            violations.append(
                self.record_violation(
                    operation=name,
                    kind=ViolationKind.REGISTRY_CHANGED,
                    actor=actor,
                    prevented=False,
                    detail="operation removed",
                )
            )
        return violations

    def record_violation(
        self,
        *,
        operation: str,
        kind: ViolationKind,
        actor: str,
        prevented: bool,
        detail: str | None = None,
    ) -> SecurityViolation:
        violation = SecurityViolation(
            operation=operation,
            kind=kind,
            actor=actor,
            prevented=prevented,
            detail=detail,
        )
        self.recorded.append(violation)
        log.error(
            "Security violation %s on %s by %s (prevented=%s)%s",
            kind.value,
            operation,
            actor,
            prevented,
            f": {detail}" if detail else "",
        )
        if self._unit_of_work_factory is None:
            return violation
        try:
            with self._unit_of_work_factory() as uow:
                uow.repositories.violations.add(violation)
                uow.commit()
        except Exception:
            log.exception("Failed to persist security violation %s", violation.id)
        return violation
