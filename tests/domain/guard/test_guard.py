from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cohortmigrate.domain.errors import (
    AuthorizationError,
    ConfirmationDeclined,
    EmergencyDisabledError,
    LockHeldError,
    QuarantinedOperationError,
)
from cohortmigrate.domain.guard import (
    ConfirmationRequest,
    ConfirmationResponse,
    ExecutionGuard,
    GuardPermit,
    ProtectedOperation,
    SecurityMonitor,
    phrase_token,
)
from cohortmigrate.domain.model import GuardState, ViolationKind
from tests.helpers.guards import OPERATOR, PHRASE, FakeEmergencySwitch, FakeLockStore

if TYPE_CHECKING:
    from cohortmigrate.domain.guard import ConfirmationProvider

DESTRUCTIVE = ProtectedOperation(
    name="wipe-sandbox",
    destructive=True,
    allowed_actors=frozenset({OPERATOR}),
    description="Delete every sandbox identity",
)
READ_ONLY = ProtectedOperation(name="list-sandbox", destructive=False)


def _guard(
    *,
    actor: str = OPERATOR,
    locks: FakeLockStore | None = None,
    emergency: FakeEmergencySwitch | None = None,
    monitor: SecurityMonitor | None = None,
) -> ExecutionGuard:
    return ExecutionGuard(
        actor=actor,
        lock_store=locks or FakeLockStore(),
        emergency=emergency or FakeEmergencySwitch(),
        monitor=monitor or SecurityMonitor(),
        confirmation_phrase=PHRASE,
        operations=(DESTRUCTIVE, READ_ONLY),
    )


def _confirm() -> ConfirmationProvider:
    return phrase_token(PHRASE, purpose="quarterly cleanup")


def test_successful_run_walks_every_state() -> None:
    locks = FakeLockStore()
    guard = _guard(locks=locks)
    seen: list[GuardPermit] = []

    result = guard.run("wipe-sandbox", lambda permit: seen.append(permit) or 42, confirm=_confirm())

    assert result == 42
    assert guard.last_run is not None
    assert guard.last_run.history == [
        GuardState.IDLE,
        GuardState.AWAITING_CONFIRMATION,
        GuardState.CONFIRMED,
        GuardState.LOCKED,
        GuardState.RUNNING,
        GuardState.COMPLETED,
        GuardState.UNLOCKED,
    ]
    (permit,) = seen
    assert permit.operation == "wipe-sandbox"
    assert permit.actor == OPERATOR
    assert permit.purpose == "quarterly cleanup"
    assert permit.lock_id == locks.acquired[0].lock_id
    assert locks.locks == {}


def test_confirmation_request_carries_operation_details() -> None:
    guard = _guard()
    requests: list[ConfirmationRequest] = []

    def provider(request: ConfirmationRequest) -> ConfirmationResponse:
        requests.append(request)
        return ConfirmationResponse(purpose="audit", phrase=request.phrase)

    guard.run("wipe-sandbox", lambda _permit: None, confirm=provider)

    (request,) = requests
    assert request.operation == "wipe-sandbox"
    assert request.description == "Delete every sandbox identity"
    assert request.actor == OPERATOR
    assert request.phrase == PHRASE


@pytest.mark.parametrize(
    "response",
    [
        None,
        ConfirmationResponse(purpose="cleanup", phrase="i understand"),
        ConfirmationResponse(purpose="   ", phrase=PHRASE),
    ],
)
def test_missing_purpose_or_wrong_phrase_cancels(response: ConfirmationResponse | None) -> None:
    locks = FakeLockStore()
    guard = _guard(locks=locks)
    calls: list[GuardPermit] = []

    with pytest.raises(ConfirmationDeclined):
        guard.run("wipe-sandbox", calls.append, confirm=lambda _request: response)

    assert calls == []
    assert locks.acquired == []
    assert guard.last_run is not None
    assert guard.last_run.state is GuardState.CANCELLED


def test_held_lock_rejects_concurrent_run() -> None:
    locks = FakeLockStore()
    monitor = SecurityMonitor()
    guard = _guard(locks=locks, monitor=monitor)
    locks.acquire("wipe-sandbox", ttl_seconds=600)
    calls: list[GuardPermit] = []

    with pytest.raises(LockHeldError):
        guard.run("wipe-sandbox", calls.append, confirm=_confirm())

    assert calls == []
    assert guard.last_run is not None
    assert guard.last_run.state is GuardState.FAILED
    assert monitor.recorded[-1].kind is ViolationKind.CONCURRENT_RUN_REJECTED


def test_expired_lock_is_reclaimed() -> None:
    locks = FakeLockStore()
    locks.acquire("wipe-sandbox", ttl_seconds=0)
    guard = _guard(locks=locks)

    guard.run("wipe-sandbox", lambda _permit: None, confirm=_confirm())

    assert len(locks.acquired) == 2
    assert locks.locks == {}


def test_lock_is_released_when_the_body_fails() -> None:
    locks = FakeLockStore()
    monitor = SecurityMonitor()
    guard = _guard(locks=locks, monitor=monitor)

    def explode(_permit: GuardPermit) -> None:
        raise RuntimeError("disk full")

    with pytest.raises(RuntimeError, match="disk full"):
        guard.run("wipe-sandbox", explode, confirm=_confirm())

    assert locks.locks == {}
    assert len(locks.released) == 1
    assert guard.last_run is not None
    assert guard.last_run.history[-3:] == [
        GuardState.RUNNING,
        GuardState.FAILED,
        GuardState.UNLOCKED,
    ]
    violation = monitor.recorded[-1]
    assert violation.kind is ViolationKind.OPERATION_FAILED
    assert violation.prevented is False
    assert violation.detail == "disk full"


def test_emergency_disable_wins_over_everything() -> None:
    emergency = FakeEmergencySwitch()
    emergency.activate(reason="incident 42", actor="security")
    locks = FakeLockStore()
    guard = _guard(actor="intruder@example.com", locks=locks, emergency=emergency)

    with pytest.raises(EmergencyDisabledError, match="incident 42"):
        guard.run("wipe-sandbox", lambda _permit: None, confirm=_confirm())
    with pytest.raises(EmergencyDisabledError):
        guard.run("list-sandbox", lambda _permit: None)

    assert locks.acquired == []


def test_unlisted_actor_is_refused() -> None:
    monitor = SecurityMonitor()
    guard = _guard(actor="intern@example.com", monitor=monitor)

    with pytest.raises(AuthorizationError):
        guard.run("wipe-sandbox", lambda _permit: None, confirm=_confirm())

    violation = monitor.recorded[-1]
    assert violation.kind is ViolationKind.UNAUTHORIZED_ACTOR
    assert violation.actor == "intern@example.com"
    assert violation.prevented is True


def test_empty_allow_list_denies_destructive_operations() -> None:
    guard = _guard()
    guard.register(ProtectedOperation(name="drop-everything", destructive=True))

    with pytest.raises(AuthorizationError):
        guard.run("drop-everything", lambda _permit: None, confirm=_confirm())


def test_non_destructive_operation_skips_confirmation_and_lock() -> None:
    locks = FakeLockStore()
    guard = _guard(locks=locks)

    result = guard.run("list-sandbox", lambda permit: permit.lock_id)

    assert result is None
    assert locks.acquired == []
    assert guard.last_run is not None
    assert guard.last_run.history == [
        GuardState.IDLE,
        GuardState.RUNNING,
        GuardState.COMPLETED,
    ]


def test_unregistered_operation_runs_with_a_recorded_warning() -> None:
    monitor = SecurityMonitor()
    guard = _guard(monitor=monitor)

    result = guard.run("ad-hoc-fix", lambda _permit: "done")

    assert result == "done"
    violation = monitor.recorded[-1]
    assert violation.kind is ViolationKind.UNREGISTERED_OPERATION
    assert violation.prevented is False


def test_quarantined_operation_is_blocked() -> None:
    monitor = SecurityMonitor(quarantined=("scripts/wipe-sandbox.py",))
    guard = _guard(monitor=monitor)
    calls: list[GuardPermit] = []

    with pytest.raises(QuarantinedOperationError):
        guard.run("wipe-sandbox", calls.append, confirm=_confirm())

    assert calls == []
    assert monitor.recorded[-1].kind is ViolationKind.QUARANTINED_EXECUTION_ATTEMPT
