from __future__ import annotations

from attributor.domain.model import (
    Contact,
    EventKind,
    MatchMethod,
    Source,
    SourceRef,
)


def test_attach_reports_new_refs_only() -> None:
    contact = Contact()

    assert contact.attach(SourceRef(Source.CRM, "c-1")) is True
    assert contact.attach(SourceRef(Source.CRM, "c-1")) is False
    assert contact.sources == {Source.CRM}
    assert str(SourceRef(Source.CRM, "c-1")) == "crm:c-1"


def test_first_email_and_name_become_primary() -> None:
    contact = Contact()

    contact.add_email("ann@example.com")
    contact.add_email("ann@home.example")
    contact.observe("name", Source.FORMS, "ann lee")
    contact.observe("name", Source.CRM, "ann b lee")

    assert contact.primary_email == "ann@example.com"
    assert contact.display_name == "ann lee"
    assert contact.field_values["name"] == {Source.FORMS: "ann lee", Source.CRM: "ann b lee"}


def test_coverage_counts_required_fields() -> None:
    contact = Contact()
    contact.add_email("ann@example.com")
    contact.observe("phone", Source.CRM, "5551234567")

    assert contact.refresh_coverage() == 0.4
    assert contact.field_coverage == 0.4
    assert contact.known_fields() == {"email", "phone"}


def test_related_records_ignore_plain_contacts() -> None:
    contact = Contact()
    contact.record_kind(Source.CRM, EventKind.CONTACT)

    assert contact.has_related_records is False

    contact.record_kind(Source.SCHEDULER, EventKind.MEETING)
    assert contact.has_related_records is True


def test_absorb_keeps_survivor_values_and_marks_merge() -> None:
    survivor = Contact(id=1)
    survivor.attach(SourceRef(Source.CRM, "c-1"))
    survivor.add_email("ann@work.example")
    survivor.observe("phone", Source.CRM, "5550000000")
    survivor.record_method(MatchMethod.CREATED)
    loser = Contact(id=2)
    loser.attach(SourceRef(Source.FORMS, "f-1"))
    loser.add_email("ann@home.example")
    loser.observe("phone", Source.CRM, "5559999999")
    loser.observe("company", Source.FORMS, "acme")
    loser.record_kind(Source.FORMS, EventKind.FORM_SUBMISSION)
    loser.record_method(MatchMethod.EMAIL)

    survivor.absorb(loser)
    loser.retire(1)

    assert survivor.source_ids == {SourceRef(Source.CRM, "c-1"), SourceRef(Source.FORMS, "f-1")}
    assert survivor.emails == {"ann@work.example", "ann@home.example"}
    assert survivor.primary_email == "ann@work.example"
    assert survivor.field_values == {
        "phone": {Source.CRM: "5550000000"},
        "company": {Source.FORMS: "acme"},
    }
    assert survivor.event_kinds == {Source.FORMS: {EventKind.FORM_SUBMISSION}}
    assert survivor.match_methods == {MatchMethod.CREATED, MatchMethod.EMAIL, MatchMethod.MERGE}
    assert loser.is_live is False
    assert loser.merged_into == 1
    assert loser.source_ids == set()
    assert loser.emails == set()
    assert loser.primary_email is None
