"""Tiered, deterministic matching of cohort records against the identity store.

Tiers are evaluated in order and never fall through once one succeeds:

1. exact email: the only identifier strong enough to merge automatically;
2. unique normalized full name: one hit updates it, several hits are
   ambiguous and resolve to creating a new identity;
3. no match: create a new identity.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, assert_never

from cohortmigrate.domain.errors import AmbiguousMatchError
from cohortmigrate.domain.model import IntendedAction, MatchResult, MatchType, normalize_email

if TYPE_CHECKING:
    from cohortmigrate.domain.cohort import CohortContext
    from cohortmigrate.domain.model import CohortRecord
    from cohortmigrate.domain.ports import IdentityRepository

log = logging.getLogger(__name__)


def _claimed_by_other(email: str, record: CohortRecord, context: CohortContext) -> bool:
    normalized = normalize_email(email)
    return normalized != record.normalized_email and context.is_in_cohort(normalized)


def match_record(
    record: CohortRecord,
    identities: IdentityRepository,
    context: CohortContext | None = None,
) -> MatchResult:
    """Classify one normalized record; store lookups may raise.

    Ambiguity is judged on every name hit. With a ``context``, a single hit whose
    email belongs to another record of the same cohort is claimed by that record,
    so this one creates a new identity instead.
    """

    by_email = identities.find_by_email(record.normalized_email)
    if by_email is not None:
        return MatchResult(
            record=record,
            match_type=MatchType.EMAIL_EXACT,
            intended_action=IntendedAction.UPDATE_EXISTING,
            identity=by_email,
        )

    by_name = list(identities.find_by_normalized_name(record.normalized_name))
    if len(by_name) > 1:
        warning = AmbiguousMatchError(record.display_name, len(by_name))
        log.warning("%s (record line %s)", warning, record.source_line)
        return MatchResult(
            record=record,
            match_type=MatchType.NAME_AMBIGUOUS,
            intended_action=IntendedAction.CREATE_NEW,
            errors=[str(warning)],
        )
    if by_name and (context is None or not _claimed_by_other(by_name[0].email, record, context)):
        return MatchResult(
            record=record,
            match_type=MatchType.NAME_UNIQUE_MATCH,
            intended_action=IntendedAction.UPDATE_EXISTING,
            identity=by_name[0],
        )

    return MatchResult(
        record=record,
        match_type=MatchType.NO_MATCH,
        intended_action=IntendedAction.CREATE_NEW,
    )


def classify_record(
    record: CohortRecord,
    identities: IdentityRepository,
    context: CohortContext | None = None,
) -> MatchResult:
    """Like ``match_record`` but store errors become an errored, never-executed result."""

    try:
        return match_record(record, identities, context)
    except Exception as exc:
        log.exception("Matching failed for %s", record.normalized_email)
        return MatchResult(
            record=record,
            match_type=MatchType.NO_MATCH,
            intended_action=IntendedAction.CREATE_NEW,
            errors=[f"Matching failed: {exc}"],
        )


def classify_cohort(context: CohortContext, identities: IdentityRepository) -> list[MatchResult]:
    """Classify every record in cohort order."""

    return [classify_record(record, identities, context) for record in context.records]


def executable(result: MatchResult) -> bool:
    """Whether a classified record may proceed to execution."""

    match result.match_type:
        case MatchType.EMAIL_EXACT | MatchType.NAME_UNIQUE_MATCH:
            return result.ok and result.identity is not None
        case MatchType.NAME_AMBIGUOUS:
            # carries only the ambiguity warning; failed lookups classify as NO_MATCH
            return True
        case MatchType.NO_MATCH:
            return result.ok
        case _:
            assert_never(result.match_type)
