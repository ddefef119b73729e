"""Apply one classified record to the identity store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, assert_never

from cohortmigrate.domain.errors import CohortGuardError, MutationError
from cohortmigrate.domain.model import (
    AccessTier,
    ExecutionOutcome,
    Identity,
    IntendedAction,
    PasswordSetMethod,
    normalize_email,
    split_display_name,
)

from .snapshots import take_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    from cohortmigrate.domain.cohort import CohortContext
    from cohortmigrate.domain.model import CohortRecord, MatchResult
    from cohortmigrate.domain.ports import MigrationRepositories

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class MigrationExecutor:
    """Updates or creates identities for one cohort under a shared temporary credential.

    ``credential_hash`` is the one-way hash of the cohort's temporary password,
    computed once per run by the caller.
    """

    def __init__(
        self,
        *,
        context: CohortContext,
        credential_hash: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.context = context
        self._credential_hash = credential_hash
        self._clock = clock

    def apply(self, result: MatchResult, repositories: MigrationRepositories) -> None:
        """Mutate the store for ``result`` and stamp its outcome.

        Raises ``CohortGuardError`` when the record is not part of the loaded
        cohort and ``MutationError`` when the target identity vanished.
        """

        record = result.record
        if not self.context.is_in_cohort(record.normalized_email):
            raise CohortGuardError(
                f"{record.normalized_email} is not a member of cohort {self.context.cohort_tag}"
            )

        match result.intended_action:
            case IntendedAction.UPDATE_EXISTING:
                self._update(result, repositories)
            case IntendedAction.CREATE_NEW:
                self._create(result, repositories)
            case _:
                assert_never(result.intended_action)

    def _provenance(self, now: datetime) -> dict[str, object]:
        return {
            "password_hash": self._credential_hash,
            "must_reset_password": True,
            "password_set_method": PasswordSetMethod.TEMP_MIGRATION_PASSWORD.value,
            "password_last_set_at": now,
            "migration_cohort": self.context.cohort_tag,
            "migration_source_file": self.context.source_name,
        }

    @staticmethod
    def _migrated_for(identity: Identity, record: CohortRecord) -> bool:
        return (
            normalize_email(identity.email) == record.normalized_email
            or identity.billing_reference_id == record.billing_reference_id
        )

    def _update(self, result: MatchResult, repositories: MigrationRepositories) -> None:
        if result.identity is None:
            raise MutationError(f"No identity resolved for {result.record.normalized_email}")
        identity = repositories.identities.get(result.identity.id)
        if identity is None:
            raise MutationError(f"Identity {result.identity.id} no longer exists")

        if identity.migrated_in(self.context.cohort_tag):
            if self._migrated_for(identity, result.record):
                result.affected_identity_id = identity.id
                result.outcome = ExecutionOutcome.SKIPPED_ALREADY_MIGRATED
                log.info(
                    "Identity %s already migrated in %s", identity.id, self.context.cohort_tag
                )
                return
            # a name match already taken by another record of this cohort
            log.warning(
                "Identity %s was migrated for another record; creating one for line %s",
                identity.id,
                result.record.source_line,
            )
            result.identity = None
            result.intended_action = IntendedAction.CREATE_NEW
            self._create(result, repositories)
            return

        result.affected_identity_id = identity.id
        take_snapshot(identity, cohort=self.context.cohort_tag, snapshots=repositories.snapshots)
        now = self._clock()
        repositories.identities.update(
            identity,
            billing_reference_id=result.record.billing_reference_id,
            updated_at=now,
            **self._provenance(now),
        )
        result.outcome = ExecutionOutcome.UPDATED
        log.debug("Updated identity %s from line %s", identity.id, result.record.source_line)

    def _create(self, result: MatchResult, repositories: MigrationRepositories) -> None:
        record = result.record
        first_name, last_name = split_display_name(record.display_name)
        now = self._clock()
        identity = Identity(
            email=record.normalized_email,
            first_name=first_name,
            last_name=last_name,
            billing_reference_id=record.billing_reference_id,
            access_tier=AccessTier.FREE,
            is_first_login=True,
            has_set_password=False,
            created_at=now,
            updated_at=now,
        )
        for name, value in self._provenance(now).items():
            setattr(identity, name, value)
        repositories.identities.add(identity)
        result.affected_identity_id = identity.id
        result.outcome = ExecutionOutcome.CREATED
        log.debug("Created identity %s from line %s", identity.id, record.source_line)
