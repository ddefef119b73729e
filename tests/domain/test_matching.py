from __future__ import annotations

import io
from typing import TYPE_CHECKING

from cohortmigrate.domain.cohort import load_cohort
from cohortmigrate.domain.matching import classify_cohort, executable, match_record
from cohortmigrate.domain.model import CohortRecord, IntendedAction, MatchType
from tests.helpers.stores import InMemoryStore, make_identity

if TYPE_CHECKING:
    from cohortmigrate.domain.cohort import CohortContext


def _context(*rows: str) -> CohortContext:
    text = "Customer Name,Customer Email,Stripe_Customer_ID,Signup Date\n" + "".join(
        f"{row}\n" for row in rows
    )
    return load_cohort(io.StringIO(text), cohort_tag="c1", source_name="c1.csv")


def _record(name: str, email: str) -> CohortRecord:
    return CohortRecord(
        display_name=name,
        email=email,
        billing_reference_id="cus_1",
        signup_date="2025-01-01",
    )


def test_email_match_updates_existing(store: InMemoryStore) -> None:
    jane = make_identity("jane@x.com", "Janet", "Other")
    store.seed(jane)
    context = _context("Jane Doe,jane@x.com,cus_1,2025-01-01")

    with store.unit_of_work() as uow:
        (result,) = classify_cohort(context, uow.repositories.identities)

    assert result.match_type is MatchType.EMAIL_EXACT
    assert result.intended_action is IntendedAction.UPDATE_EXISTING
    assert result.identity is not None
    assert result.identity.id == jane.id
    assert result.errors == []


def test_email_tier_wins_over_name_tier(store: InMemoryStore) -> None:
    by_email = make_identity("jane@x.com", "Someone", "Else")
    by_name = make_identity("other@x.com", "Jane", "Doe")
    store.seed(by_email, by_name)

    with store.unit_of_work() as uow:
        result = match_record(_record("Jane Doe", "JANE@x.com"), uow.repositories.identities)

    assert result.match_type is MatchType.EMAIL_EXACT
    assert result.identity is not None
    assert result.identity.id == by_email.id


def test_unique_name_match_updates_existing(store: InMemoryStore) -> None:
    jane = make_identity("old-address@x.com", "Jane", "Doe")
    store.seed(jane)

    with store.unit_of_work() as uow:
        result = match_record(_record("  jane   DOE ", "new@x.com"), uow.repositories.identities)

    assert result.match_type is MatchType.NAME_UNIQUE_MATCH
    assert result.intended_action is IntendedAction.UPDATE_EXISTING
    assert result.identity is not None
    assert result.identity.id == jane.id


def test_ambiguous_name_creates_new_and_flags_error(store: InMemoryStore) -> None:
    store.seed(
        make_identity("a@x.com", "Sam", "Lee"),
        make_identity("b@x.com", "Sam", "Lee"),
    )

    with store.unit_of_work() as uow:
        result = match_record(_record("Sam Lee", "sam@x.com"), uow.repositories.identities)

    assert result.match_type is MatchType.NAME_AMBIGUOUS
    assert result.intended_action is IntendedAction.CREATE_NEW
    assert result.identity is None
    assert result.errors == ["Multiple identities (2) found with name: Sam Lee"]
    assert executable(result)


def test_no_match_creates_new(store: InMemoryStore) -> None:
    with store.unit_of_work() as uow:
        result = match_record(_record("Nobody Known", "new@x.com"), uow.repositories.identities)

    assert result.match_type is MatchType.NO_MATCH
    assert result.intended_action is IntendedAction.CREATE_NEW
    assert executable(result)


def test_store_error_is_attached_and_never_executed(store: InMemoryStore) -> None:
    store.failures.lookup_emails.add("broken@x.com")
    context = _context(
        "Broken Lookup,broken@x.com,cus_1,2025-01-01",
        "Fine Person,fine@x.com,cus_2,2025-01-01",
    )

    with store.unit_of_work() as uow:
        broken, fine = classify_cohort(context, uow.repositories.identities)

    assert broken.match_type is MatchType.NO_MATCH
    assert broken.intended_action is IntendedAction.CREATE_NEW
    assert broken.errors == ["Matching failed: lookup failed for broken@x.com"]
    assert not executable(broken)
    assert fine.ok


def test_name_hit_owned_by_another_cohort_member_is_not_a_candidate(
    store: InMemoryStore,
) -> None:
    # sam-a's identity belongs to the first record; the second must not merge into it
    store.seed(make_identity("sam-a@x.com", "Sam", "Lee"))
    context = _context(
        "Sam Lee,sam-a@x.com,cus_1,2025-01-01",
        "Sam Lee,sam-b@x.com,cus_2,2025-01-01",
    )

    with store.unit_of_work() as uow:
        first, second = classify_cohort(context, uow.repositories.identities)

    assert first.match_type is MatchType.EMAIL_EXACT
    assert second.match_type is MatchType.NO_MATCH
    assert second.intended_action is IntendedAction.CREATE_NEW


def test_classification_is_repeatable_and_read_only(store: InMemoryStore) -> None:
    store.seed(make_identity("jane@x.com", "Jane", "Doe"))
    context = _context(
        "Jane Doe,jane@x.com,cus_1,2025-01-01",
        "New Person,new@x.com,cus_2,2025-01-01",
    )

    with store.unit_of_work() as uow:
        first = classify_cohort(context, uow.repositories.identities)
    with store.unit_of_work() as uow:
        second = classify_cohort(context, uow.repositories.identities)

    assert [r.to_dict() for r in first] == [r.to_dict() for r in second]
    assert store.commits == 0
    assert len(store.state.identities) == 1


def test_claimed_name_hit_still_counts_towards_ambiguity(store: InMemoryStore) -> None:
    claimed = make_identity("sam-a@x.com", "Sam", "Lee")
    unclaimed = make_identity("b@x.com", "Sam", "Lee")
    store.seed(claimed, unclaimed)
    context = _context(
        "Sam Lee,sam-a@x.com,cus_1,2025-01-01",
        "Sam Lee,sam-c@x.com,cus_2,2025-01-01",
    )

    with store.unit_of_work() as uow:
        first, second = classify_cohort(context, uow.repositories.identities)

    assert first.match_type is MatchType.EMAIL_EXACT
    assert second.match_type is MatchType.NAME_AMBIGUOUS
    assert second.intended_action is IntendedAction.CREATE_NEW
    assert second.identity is None
    assert second.errors == ["Multiple identities (2) found with name: Sam Lee"]
