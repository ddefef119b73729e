"""Point-in-time snapshots of identities and rollback from them."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from cohortmigrate.domain.errors import IdentityNotFoundError, SnapshotNotFoundError
from cohortmigrate.domain.model import MUTABLE_FIELDS, Snapshot

if TYPE_CHECKING:
    from cohortmigrate.domain.model import Identity
    from cohortmigrate.domain.ports import MigrationRepositories, SnapshotRepository

log = logging.getLogger(__name__)

_DATETIME_FIELDS = frozenset({"password_last_set_at"})


def capture_fields(identity: Identity) -> dict[str, Any]:
    """Copy the mutable fields into a JSON-safe mapping."""

    captured: dict[str, Any] = {}
    for name in MUTABLE_FIELDS:
        value = getattr(identity, name)
        if isinstance(value, datetime):
            value = value.isoformat()
        captured[name] = value
    return captured


def restore_values(fields: dict[str, Any]) -> dict[str, Any]:
    restored: dict[str, Any] = {}
    for name in MUTABLE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if name in _DATETIME_FIELDS and isinstance(value, str):
            value = datetime.fromisoformat(value)
        restored[name] = value
    return restored


def take_snapshot(identity: Identity, *, cohort: str, snapshots: SnapshotRepository) -> Snapshot:
    """Persist the identity's pre-mutation state. Call immediately before writing."""

    snapshot = Snapshot(identity_id=identity.id, cohort=cohort, fields=capture_fields(identity))
    snapshots.add(snapshot)
    log.debug("Snapshot %s taken for identity %s (cohort %s)", snapshot.id, identity.id, cohort)
    return snapshot


def rollback_identity(
    identity_id: str,
    *,
    cohort: str,
    repositories: MigrationRepositories,
) -> Identity:
    """Restore exactly the snapshotted fields from the most recent snapshot.

    The snapshot stays in place as history and the overwritten state is not
    itself snapshotted, so a rollback is one-shot.
    """

    snapshot = repositories.snapshots.latest_for(identity_id, cohort)
    if snapshot is None:
        raise SnapshotNotFoundError(f"No snapshot found for identity {identity_id} in {cohort}")
    identity = repositories.identities.get(identity_id)
    if identity is None:
        raise IdentityNotFoundError(f"Identity {identity_id} no longer exists")

    repositories.identities.update(identity, **restore_values(snapshot.fields))
    log.info("Identity %s rolled back to snapshot %s", identity_id, snapshot.id)
    return identity
