from __future__ import annotations

import pytest

from attributor.domain.errors import InvalidRecord
from attributor.domain.identity import (
    IdentityResolver,
    TokenSetNameMatcher,
    follow,
    identity_keys,
    merge_order,
    validate_event,
)
from attributor.domain.model import (
    Contact,
    EventKind,
    MatchConfidence,
    MatchMethod,
    Source,
    SourceRef,
)
from attributor.domain.pipeline import IngestionPipeline
from tests.helpers.attribution import (
    FakeContactRepository,
    at,
    contact_record,
    form_record,
    make_event,
    make_repositories,
    meeting_record,
)


class _LaggingContactRepository(FakeContactRepository):
    """Misses source-id lookups, as if another worker created the owner concurrently."""

    def find_by_source_id(self, ref: SourceRef) -> Contact | None:
        _ = ref
        return None


def test_email_match_across_sources_is_high_confidence() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()

    pipeline.process(contact_record("c-1", email="a@x.com", name="Ada Lovelace"), repositories)
    outcome = pipeline.process(
        meeting_record("m-1", start_time=at(1), invitee_email="A@X.com ", invitee_name="Ada"),
        repositories,
    )

    live = repositories.contacts.live()
    assert len(live) == 1
    contact = live[0]
    assert contact.source_ids == {
        SourceRef(Source.CRM, "c-1"),
        SourceRef(Source.SCHEDULER, "m-1"),
    }
    assert contact.match_confidence is MatchConfidence.HIGH
    assert outcome.method is MatchMethod.EMAIL
    assert outcome.match_confidence is MatchConfidence.HIGH
    assert contact.primary_email == "a@x.com"


def test_replaying_records_is_idempotent() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()
    records = [
        contact_record("c-1", email="a@x.com", name="Ada Lovelace"),
        meeting_record("m-1", start_time=at(1), invitee_email="a@x.com"),
    ]

    for record in records:
        pipeline.process(record, repositories)
    first_pass = [
        (contact.id, set(contact.source_ids), contact.match_confidence)
        for contact in repositories.contacts.live()
    ]
    replayed = [pipeline.process(record, repositories) for record in records]

    assert [
        (contact.id, set(contact.source_ids), contact.match_confidence)
        for contact in repositories.contacts.live()
    ] == first_pass
    assert all(outcome.method is MatchMethod.SOURCE_ID for outcome in replayed)
    assert all(outcome.appended is False for outcome in replayed)
    assert repositories.raw_events.count() == 2
    assert len(repositories.touchpoints.for_contact(first_pass[0][0] or 0)) == 1


def test_shared_email_merges_contacts_and_moves_their_history() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()
    pipeline.process(contact_record("c-1", email="a@x.com", name="Ada"), repositories)
    pipeline.process(
        form_record("f-1", submitted_at=at(2), email="b@y.com", name="Ada L"), repositories
    )
    assert len(repositories.contacts.live()) == 2

    outcome = pipeline.process(
        contact_record("c-1", email="b@y.com", name="Ada", observed_at=at(3)), repositories
    )

    live = repositories.contacts.live()
    assert len(live) == 1
    survivor = live[0]
    assert survivor.id == 1
    assert outcome.merged == (2,)
    loser = repositories.contacts.get(2)
    assert loser is not None
    assert loser.merged_into == survivor.id
    assert loser.source_ids == set()
    assert repositories.contacts.find_by_source_id(SourceRef(Source.FORMS, "f-1")) is survivor
    assert repositories.contacts.find_by_email("b@y.com") == [survivor]
    assert MatchMethod.MERGE in survivor.match_methods
    assert survivor.match_confidence is MatchConfidence.HIGH

    touchpoints = repositories.touchpoints.for_contact(1)
    assert [tp.external_id for tp in touchpoints] == ["f-1"]
    assert repositories.attributions.get(2) is None
    record = repositories.attributions.get(1)
    assert record is not None
    assert record.credit_distribution == {Source.FORMS: 1.0}


def test_every_source_id_has_one_live_owner_after_merges() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()
    records = [
        contact_record("c-1", email="one@x.com"),
        contact_record("c-2", email="two@x.com"),
        form_record("f-1", submitted_at=at(1), email="two@x.com"),
        meeting_record("m-1", start_time=at(2), invitee_email=["one@x.com", "two@x.com"]),
        contact_record("c-2", email="one@x.com", observed_at=at(3)),
    ]
    for record in records:
        pipeline.process(record, repositories)

    owners: dict[SourceRef, int] = {}
    for contact in repositories.contacts.live():
        for ref in contact.source_ids:
            assert ref not in owners
            assert contact.id is not None
            owners[ref] = contact.id
    assert set(owners) == {
        SourceRef(Source.CRM, "c-1"),
        SourceRef(Source.CRM, "c-2"),
        SourceRef(Source.FORMS, "f-1"),
        SourceRef(Source.SCHEDULER, "m-1"),
    }
    assert len(set(owners.values())) == 1


def test_concurrent_owner_conflict_resolves_by_merge() -> None:
    contacts = _LaggingContactRepository()
    owner = Contact(source_ids={SourceRef(Source.CRM, "c-1")}, emails={"old@x.com"})
    contacts.add(owner)
    contacts.save(owner)

    validated = validate_event(contact_record("c-1", email="new@x.com", name="Ada"))
    resolution = IdentityResolver().resolve(validated, contacts)

    assert resolution.contact is owner
    assert resolution.method is MatchMethod.CREATED
    assert resolution.merged == (2,)
    assert owner.emails == {"old@x.com", "new@x.com"}
    assert [contact.id for contact in contacts.live()] == [1]


def test_fuzzy_name_requires_shared_phone_or_company() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()
    pipeline.process(
        contact_record("c-1", name="Jane Doe", phone="555-010-2030"), repositories
    )

    outcome = pipeline.process(
        form_record("f-1", submitted_at=at(1), name="Jane", phone="(555) 010 2030"),
        repositories,
    )
    pipeline.process(form_record("f-2", submitted_at=at(2), name="Jane Doe"), repositories)

    assert outcome.method is MatchMethod.FUZZY_NAME
    assert outcome.match_confidence is MatchConfidence.MEDIUM
    live = repositories.contacts.live()
    assert len(live) == 2
    assert live[0].sources == frozenset({Source.CRM, Source.FORMS})


def test_fuzzy_strategy_is_pluggable() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline(resolver=IdentityResolver(name_matcher=TokenSetNameMatcher()))
    pipeline.process(contact_record("c-1", name="Jane Doe", company="Acme"), repositories)

    partial = pipeline.process(
        form_record("f-1", submitted_at=at(1), name="Jane", company="ACME"), repositories
    )
    reordered = pipeline.process(
        form_record("f-2", submitted_at=at(2), name="Doe, Jane", company="acme"), repositories
    )

    assert partial.method is MatchMethod.CREATED
    assert reordered.method is MatchMethod.FUZZY_NAME
    assert reordered.contact_id == 1


def test_related_record_attaches_through_payload_contact_id() -> None:
    repositories = make_repositories()
    pipeline = IngestionPipeline()
    pipeline.process(contact_record("c-1", name="Ada"), repositories)

    outcome = pipeline.process(
        make_event(EventKind.DEAL, "d-1", contact_id="c-1", status="open"), repositories
    )

    assert outcome.contact_id == 1
    assert outcome.method is MatchMethod.SOURCE_ID
    assert outcome.deal_id is not None


@pytest.mark.parametrize(
    "event",
    [
        make_event(EventKind.CONTACT, None, email="a@x.com"),
        make_event(EventKind.CONTACT, "   ", email="a@x.com"),
        make_event("note", "n-1"),
        make_event(EventKind.CONTACT, "c-1", source="fax"),  # type: ignore[arg-type]
    ],
)
def test_validate_event_rejects_malformed_records(event: object) -> None:
    with pytest.raises(InvalidRecord):
        validate_event(event)  # type: ignore[arg-type]


def test_identity_keys_cover_ref_email_and_contact_ref() -> None:
    validated = validate_event(
        make_event(
            EventKind.MEETING,
            "m-1",
            source=Source.SCHEDULER,
            invitee_email="A@x.com",
            contact_id="c-9",
        )
    )

    assert identity_keys(validated) == (
        "ref:scheduler:m-1",
        "email:a@x.com",
        "ref:scheduler:c-9",
    )


def test_merge_order_prefers_more_source_ids_then_lower_id() -> None:
    small = Contact(id=1, source_ids={SourceRef(Source.CRM, "c-1")})
    large = Contact(
        id=2,
        source_ids={SourceRef(Source.CRM, "c-2"), SourceRef(Source.FORMS, "f-2")},
    )
    twin = Contact(id=3, source_ids={SourceRef(Source.CRM, "c-3")})

    assert merge_order(small, large) == (large, small)
    assert merge_order(twin, small) == (small, twin)


def test_follow_walks_merge_pointers_and_detects_cycles() -> None:
    contacts = FakeContactRepository()
    first, second, third = Contact(), Contact(), Contact()
    for contact in (first, second, third):
        contacts.add(contact)
    first.merged_into = 2
    second.merged_into = 3

    assert follow(contacts, 1) is third

    third.merged_into = 1
    with pytest.raises(RuntimeError, match="cycle"):
        follow(contacts, 1)
