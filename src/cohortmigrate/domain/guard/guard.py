"""Execution guard for destructive operations.

A guarded run walks a fixed state machine::

    IDLE -> AWAITING_CONFIRMATION -> {CONFIRMED, CANCELLED}
         -> LOCKED -> RUNNING -> {COMPLETED, FAILED} -> UNLOCKED

The emergency switch is checked before anything else, then the quarantine
list, then the operation's allow-list. Confirmation is supplied by the caller
as a ``ConfirmationProvider`` so the same gate serves a terminal prompt, an API
call or a test. The lock is taken atomically from a ``LockStore`` and released
on every exit path once acquired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cohortmigrate.domain.errors import (
    AuthorizationError,
    ConfirmationDeclined,
    EmergencyDisabledError,
    LockHeldError,
    QuarantinedOperationError,
)
from cohortmigrate.domain.model import GuardState, ViolationKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cohortmigrate.domain.model import GuardLock
    from cohortmigrate.domain.ports import EmergencySwitch, LockStore

    from .monitor import SecurityMonitor

log = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 3600


@dataclass(frozen=True, slots=True, kw_only=True)
class ProtectedOperation:
    """Registry entry describing how an operation must be guarded.

    An empty ``allowed_actors`` denies every actor for destructive operations
    and admits every actor otherwise.
    """

    name: str
    destructive: bool
    requires_confirmation: bool = True
    allowed_actors: frozenset[str] = frozenset()
    description: str = ""

    def permits(self, actor: str) -> bool:
        if not self.allowed_actors:
            return not self.destructive
        return actor in self.allowed_actors


@dataclass(frozen=True, slots=True, kw_only=True)
class ConfirmationRequest:
    operation: str
    description: str
    actor: str
    phrase: str


@dataclass(frozen=True, slots=True)
class ConfirmationResponse:
    purpose: str
    phrase: str


type ConfirmationProvider = Callable[[ConfirmationRequest], ConfirmationResponse | None]


def phrase_token(phrase: str, *, purpose: str) -> ConfirmationProvider:
    """Non-interactive provider that answers every request with ``phrase``."""

    def _provide(_request: ConfirmationRequest) -> ConfirmationResponse:
        return ConfirmationResponse(purpose=purpose, phrase=phrase)

    return _provide


@dataclass(frozen=True, slots=True, kw_only=True)
class GuardPermit:
    """Proof handed to an operation body that it runs inside the guard."""

    operation: str
    actor: str
    lock_id: str | None = None
    purpose: str | None = None


@dataclass(slots=True)
class GuardRun:
    operation: str
    actor: str
    state: GuardState = GuardState.IDLE
    history: list[GuardState] = field(default_factory=lambda: [GuardState.IDLE])
    lock: GuardLock | None = None
    purpose: str | None = None

    def transition(self, state: GuardState) -> None:
        log.debug("Guard %s: %s -> %s", self.operation, self.state.value, state.value)
        self.state = state
        self.history.append(state)


class ExecutionGuard:
    def __init__(
        self,
        *,
        actor: str,
        lock_store: LockStore,
        emergency: EmergencySwitch,
        monitor: SecurityMonitor,
        confirmation_phrase: str,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        operations: Iterable[ProtectedOperation] = (),
    ) -> None:
        self.actor = actor
        self._lock_store = lock_store
        self._emergency = emergency
        self._monitor = monitor
        self._phrase = confirmation_phrase
        self._lock_ttl_seconds = lock_ttl_seconds
        self._operations: dict[str, ProtectedOperation] = {}
        for operation in operations:
            self.register(operation)
        self.last_run: GuardRun | None = None

    def register(self, operation: ProtectedOperation) -> None:
        self._operations[operation.name] = operation
        log.info("Registered %s for protection", operation.name)

    def registered(self, name: str) -> ProtectedOperation | None:
        return self._operations.get(name)

    @property
    def operations(self) -> tuple[str, ...]:
        return tuple(sorted(self._operations))

    def ensure_not_disabled(self, operation: str) -> None:
        """Refuse ``operation`` while the emergency switch is on, recording the attempt.

        Callers with expensive setup check this at entry; ``run`` checks it again.
        """

        if not self._emergency.is_active():
            return
        flag = self._emergency.status()
        reason = flag.reason if flag is not None else "unknown"
        self._monitor.record_violation(
            operation=operation,
            kind=ViolationKind.EMERGENCY_BLOCKED,
            actor=self.actor,
            prevented=True,
            detail=reason,
        )
        raise EmergencyDisabledError(f"Emergency disable is active ({reason}); {operation} blocked")

    def run[T](
        self,
        operation: str,
        body: Callable[[GuardPermit], T],
        *,
        confirm: ConfirmationProvider | None = None,
    ) -> T:
        """Run ``body`` under the guard; the body only starts once every gate has passed."""

        run = GuardRun(operation=operation, actor=self.actor)
        self.last_run = run
        self._monitor.check_registry(self.operations, actor=self.actor)

        try:
            self.ensure_not_disabled(operation)
        except EmergencyDisabledError:
            run.transition(GuardState.FAILED)
            raise

        if self._monitor.should_block_execution(operation, actor=self.actor):
            run.transition(GuardState.FAILED)
            raise QuarantinedOperationError(f"{operation} is quarantined")

        protected = self._operations.get(operation)
        if protected is None:
            log.warning("%s is not registered for protection; running unguarded", operation)
            self._monitor.record_violation(
                operation=operation,
                kind=ViolationKind.UNREGISTERED_OPERATION,
                actor=self.actor,
                prevented=False,
            )
            return self._execute(run, body, GuardPermit(operation=operation, actor=self.actor))

        if not protected.permits(self.actor):
            run.transition(GuardState.FAILED)
            self._monitor.record_violation(
                operation=operation,
                kind=ViolationKind.UNAUTHORIZED_ACTOR,
                actor=self.actor,
                prevented=True,
            )
            raise AuthorizationError(f"{self.actor} is not authorized to run {operation}")

        if protected.destructive and protected.requires_confirmation:
            run.purpose = self._confirm(run, protected, confirm)

        if not protected.destructive:
            permit = GuardPermit(operation=operation, actor=self.actor, purpose=run.purpose)
            return self._execute(run, body, permit)

        try:
            lock = self._lock_store.acquire(operation, ttl_seconds=self._lock_ttl_seconds)
        except LockHeldError:
            run.transition(GuardState.FAILED)
            self._monitor.record_violation(
                operation=operation,
                kind=ViolationKind.CONCURRENT_RUN_REJECTED,
                actor=self.actor,
                prevented=True,
            )
            raise
        run.lock = lock
        run.transition(GuardState.LOCKED)
        try:
            permit = GuardPermit(
                operation=operation,
                actor=self.actor,
                lock_id=lock.lock_id,
                purpose=run.purpose,
            )
            return self._execute(run, body, permit)
        finally:
            self._lock_store.release(lock)
            run.transition(GuardState.UNLOCKED)
            log.info("Lock %s on %s released", lock.lock_id, operation)

    def _confirm(
        self,
        run: GuardRun,
        protected: ProtectedOperation,
        confirm: ConfirmationProvider | None,
    ) -> str:
        run.transition(GuardState.AWAITING_CONFIRMATION)
        request = ConfirmationRequest(
            operation=protected.name,
            description=protected.description,
            actor=self.actor,
            phrase=self._phrase,
        )
        response = confirm(request) if confirm is not None else None
        if response is None or not response.purpose.strip() or response.phrase != self._phrase:
            run.transition(GuardState.CANCELLED)
            log.info("%s cancelled: confirmation not given", protected.name)
            raise ConfirmationDeclined(f"Confirmation declined for {protected.name}")
        run.transition(GuardState.CONFIRMED)
        log.info("%s confirmed by %s: %s", protected.name, self.actor, response.purpose.strip())
        return response.purpose.strip()

    def _execute[T](
        self,
        run: GuardRun,
        body: Callable[[GuardPermit], T],
        permit: GuardPermit,
    ) -> T:
        run.transition(GuardState.RUNNING)
        try:
            result = body(permit)
        except Exception as exc:
            run.transition(GuardState.FAILED)
            log.error("%s failed: %s", run.operation, exc)
            self._monitor.record_violation(
                operation=run.operation,
                kind=ViolationKind.OPERATION_FAILED,
                actor=self.actor,
                prevented=False,
                detail=str(exc),
            )
            raise
        run.transition(GuardState.COMPLETED)
        return result
