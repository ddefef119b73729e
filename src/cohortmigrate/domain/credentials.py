"""First access after migration: temporary-credential login and the forced reset."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cohortmigrate.domain.errors import IdentityNotFoundError
from cohortmigrate.domain.model import PasswordSetMethod, normalize_email

if TYPE_CHECKING:
    from cohortmigrate.domain.cohort import CohortContext
    from cohortmigrate.domain.model import Identity
    from cohortmigrate.domain.ports import IdentityRepository, PasswordHasher

log = logging.getLogger(__name__)


def verify_temporary_login(
    email: str,
    password: str,
    *,
    context: CohortContext,
    identities: IdentityRepository,
    hasher: PasswordHasher,
) -> bool:
    """Whether ``password`` opens the account of a cohort member."""

    normalized = normalize_email(email)
    if not context.is_in_cohort(normalized):
        return False
    identity = identities.find_by_email(normalized)
    if identity is None or not identity.password_hash:
        return False
    return hasher.verify(password, identity.password_hash)


def complete_password_reset(
    identity_id: str,
    new_password: str,
    *,
    identities: IdentityRepository,
    hasher: PasswordHasher,
) -> Identity:
    if not new_password:
        raise ValueError("New password must not be empty")
    identity = identities.get(identity_id)
    if identity is None:
        raise IdentityNotFoundError(f"Identity {identity_id} not found")

    now = datetime.now(tz=UTC)
    identities.update(
        identity,
        password_hash=hasher.hash(new_password),
        must_reset_password=False,
        password_last_set_at=now,
        password_set_method=PasswordSetMethod.FORCED_MIGRATION_RESET.value,
        has_set_password=True,
        is_first_login=False,
        updated_at=now,
    )
    log.info("Password reset completed for identity %s", identity_id)
    return identity
