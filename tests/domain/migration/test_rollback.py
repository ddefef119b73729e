from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from cohortmigrate.domain.errors import IdentityNotFoundError, SnapshotNotFoundError
from cohortmigrate.domain.migration import (
    capture_fields,
    restore_values,
    rollback_identity,
    take_snapshot,
)
from cohortmigrate.domain.model import MUTABLE_FIELDS, AuditAction, AuditStatus, GuardState
from tests.helpers.stores import InMemoryStore, make_identity
from tests.support.cohorts import COHORT, build_harness, confirmed

if TYPE_CHECKING:
    from pathlib import Path

JANE = ("Jane Doe", "jane@x.com", "cus_jane", "2025-01-01")


def test_snapshot_captures_exactly_the_mutable_fields() -> None:
    last_set = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
    identity = make_identity("jane@x.com", "Jane", "Doe", password_last_set_at=last_set)

    fields = capture_fields(identity)

    assert tuple(fields) == MUTABLE_FIELDS
    assert fields["password_last_set_at"] == "2024-05-01T12:30:00+00:00"
    assert restore_values(fields)["password_last_set_at"] == last_set
    assert "email" not in fields
    assert "first_name" not in fields


def test_rollback_restores_only_snapshotted_fields(store: InMemoryStore) -> None:
    jane = make_identity("jane@x.com", "Jane", "Doe")
    bystander = make_identity("bob@x.com", "Bob", "Bystander")
    store.seed(jane, bystander)
    with store.unit_of_work() as uow:
        target = uow.repositories.identities.get(jane.id)
        assert target is not None
        take_snapshot(target, cohort=COHORT, snapshots=uow.repositories.snapshots)
        uow.repositories.identities.update(
            target,
            password_hash="temp-hash",
            must_reset_password=True,
            migration_cohort=COHORT,
            first_name="Janet",
        )
        other = uow.repositories.identities.get(bystander.id)
        assert other is not None
        uow.repositories.identities.update(other, password_hash="changed-later")
        uow.commit()

    with store.unit_of_work() as uow:
        rollback_identity(jane.id, cohort=COHORT, repositories=uow.repositories)
        uow.commit()

    restored = store.identity(jane.id)
    assert restored.password_hash == "original-hash"
    assert restored.must_reset_password is False
    assert restored.migration_cohort is None
    # not a snapshotted field
    assert restored.first_name == "Janet"
    assert store.identity(bystander.id).password_hash == "changed-later"
    assert len(store.snapshots) == 1


def test_rollback_uses_most_recent_snapshot(store: InMemoryStore) -> None:
    jane = make_identity("jane@x.com", "Jane", "Doe")
    store.seed(jane)
    for billing in ("cus_first", "cus_second"):
        with store.unit_of_work() as uow:
            target = uow.repositories.identities.get(jane.id)
            assert target is not None
            uow.repositories.identities.update(target, billing_reference_id=billing)
            take_snapshot(target, cohort=COHORT, snapshots=uow.repositories.snapshots)
            uow.commit()

    with store.unit_of_work() as uow:
        restored = rollback_identity(jane.id, cohort=COHORT, repositories=uow.repositories)

    assert restored.billing_reference_id == "cus_second"


def test_rollback_without_snapshot_raises(store: InMemoryStore) -> None:
    jane = make_identity("jane@x.com", "Jane", "Doe")
    store.seed(jane)

    with store.unit_of_work() as uow, pytest.raises(SnapshotNotFoundError):
        rollback_identity(jane.id, cohort=COHORT, repositories=uow.repositories)


def test_rollback_of_deleted_identity_raises(store: InMemoryStore) -> None:
    jane = make_identity("jane@x.com", "Jane", "Doe")
    with store.unit_of_work() as uow:
        take_snapshot(jane, cohort=COHORT, snapshots=uow.repositories.snapshots)
        uow.commit()

    with store.unit_of_work() as uow, pytest.raises(IdentityNotFoundError):
        rollback_identity(jane.id, cohort=COHORT, repositories=uow.repositories)


def test_guarded_rollback_after_execute(tmp_path: Path) -> None:
    store = InMemoryStore()
    jane = make_identity("jane@x.com", "Jane", "Doe")
    store.seed(jane)
    harness = build_harness(tmp_path, [JANE], store=store)
    harness.pipeline.execute(confirm=confirmed())

    restored = harness.pipeline.rollback(jane.id, confirm=confirmed("undo jane"))

    assert restored.id == jane.id
    assert store.identity(jane.id).password_hash == "original-hash"
    assert store.identity(jane.id).billing_reference_id == "cus_original"
    entry = store.audit_entries[-1]
    assert entry.action is AuditAction.ROLLBACK
    assert entry.status is AuditStatus.COMPLETED
    assert entry.payload["identityId"] == jane.id
    assert harness.locks.released[-1].operation == "cohort-migration.rollback"


def test_guarded_rollback_failure_is_audited(tmp_path: Path) -> None:
    harness = build_harness(tmp_path, [JANE])

    with pytest.raises(SnapshotNotFoundError):
        harness.pipeline.rollback("missing-id", confirm=confirmed())

    (entry,) = harness.store.audit_entries
    assert entry.status is AuditStatus.FAILED
    assert "missing-id" in entry.payload["error"]
    assert harness.guard.last_run is not None
    assert harness.guard.last_run.state is GuardState.UNLOCKED
    assert GuardState.FAILED in harness.guard.last_run.history
