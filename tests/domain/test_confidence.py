from __future__ import annotations

import pytest

from attributor.domain.confidence import ConfidenceScorer, classify, importance_of
from attributor.domain.model import (
    Contact,
    EventKind,
    MatchConfidence,
    MatchMethod,
    Source,
    SourceRef,
)


def _contact(
    contact_id: int,
    *sources: Source,
    methods: set[MatchMethod] | None = None,
    kinds: dict[Source, set[EventKind]] | None = None,
    **field_values: dict[Source, str],
) -> Contact:
    return Contact(
        id=contact_id,
        source_ids={SourceRef(source, f"{source}-{contact_id}") for source in sources},
        match_methods=methods or {MatchMethod.CREATED},
        event_kinds=kinds or {source: {EventKind.CONTACT} for source in sources},
        field_values=dict(field_values),
    )


def test_two_sources_joined_by_email_are_high() -> None:
    contact = _contact(
        1, Source.CRM, Source.SCHEDULER, methods={MatchMethod.CREATED, MatchMethod.EMAIL}
    )

    assert classify(contact) is MatchConfidence.HIGH


def test_two_sources_without_email_evidence_are_medium() -> None:
    contact = _contact(
        1, Source.CRM, Source.FORMS, methods={MatchMethod.CREATED, MatchMethod.SOURCE_ID}
    )

    assert classify(contact) is MatchConfidence.MEDIUM


def test_single_source_with_several_record_kinds_is_medium() -> None:
    contact = _contact(
        1,
        Source.CRM,
        kinds={Source.CRM: {EventKind.CONTACT, EventKind.ACTIVITY}},
    )

    assert classify(contact) is MatchConfidence.MEDIUM


def test_single_source_fuzzy_match_is_low() -> None:
    contact = _contact(1, Source.CRM, methods={MatchMethod.FUZZY_NAME})

    assert classify(contact) is MatchConfidence.LOW


def test_single_source_related_record_is_low() -> None:
    contact = _contact(1, Source.SCHEDULER, kinds={Source.SCHEDULER: {EventKind.MEETING}})

    assert classify(contact) is MatchConfidence.LOW


def test_isolated_contact_record_is_none() -> None:
    assert classify(_contact(1, Source.CRM)) is MatchConfidence.NONE
    assert classify(Contact(id=2)) is MatchConfidence.NONE


def test_apply_stores_level_on_contact() -> None:
    contact = _contact(1, Source.CRM, methods={MatchMethod.FUZZY_NAME})

    result = ConfidenceScorer().apply(contact)

    assert result.match_confidence is MatchConfidence.LOW
    assert contact.match_confidence is MatchConfidence.LOW
    assert result.sources == frozenset({Source.CRM})


def _population() -> list[Contact]:
    high = _contact(1, Source.CRM, Source.SCHEDULER, methods={MatchMethod.EMAIL})
    medium = _contact(2, Source.CRM, Source.FORMS)
    low = _contact(3, Source.CRM, methods={MatchMethod.FUZZY_NAME})
    none = _contact(4, Source.CRM)
    retired = _contact(5, Source.CRM, Source.FORMS, methods={MatchMethod.EMAIL})
    retired.retire(1)
    return [high, medium, low, none, retired]


def test_confidence_report_weights_the_distribution() -> None:
    report = ConfidenceScorer().confidence_report(_population())

    assert report.total == 4
    assert report.counts == {level: 1 for level in MatchConfidence}
    assert report.distribution == {level: 0.25 for level in MatchConfidence}
    assert report.overall_match_score == pytest.approx(0.25 * (1.0 + 0.7 + 0.3))


def test_configured_weights_override_defaults() -> None:
    scorer = ConfidenceScorer(weights={MatchConfidence.MEDIUM: 0.5})

    report = scorer.confidence_report(_population())

    assert scorer.weights[MatchConfidence.HIGH] == 1.0
    assert report.overall_match_score == pytest.approx(0.25 * (1.0 + 0.5 + 0.3))


def test_confidence_report_of_empty_population() -> None:
    report = ConfidenceScorer().confidence_report([])

    assert report.total == 0
    assert report.overall_match_score == 0.0
    assert set(report.distribution.values()) == {0.0}


def test_consistency_report_flags_disagreeing_fields() -> None:
    agreeing = _contact(
        1,
        Source.CRM,
        Source.SCHEDULER,
        name={Source.CRM: "ann lee", Source.SCHEDULER: "ann lee"},
        email={Source.CRM: "ann@example.com", Source.SCHEDULER: "ann@example.com"},
    )
    disagreeing = _contact(
        2,
        Source.CRM,
        Source.SCHEDULER,
        name={Source.CRM: "bob stone", Source.SCHEDULER: "robert stone"},
        email={Source.CRM: "bob@example.com", Source.SCHEDULER: "bob@example.com"},
    )
    single_source = _contact(3, Source.CRM, name={Source.CRM: "carla"})

    report = ConfidenceScorer().consistency_report([agreeing, disagreeing, single_source])
    by_field = {item.field: item for item in report.fields}

    assert report.multi_source_contacts == 2
    assert by_field["name"].score == 0.5
    assert by_field["name"].samples == 2
    assert by_field["name"].agreeing == 1
    assert by_field["email"].score == 1.0
    assert by_field["phone"].score is None
    assert by_field["phone"].samples == 0
    assert [item.field for item in report.inconsistent] == ["name"]


def test_consistency_threshold_is_configurable() -> None:
    contact = _contact(
        1,
        Source.CRM,
        Source.FORMS,
        company={Source.CRM: "acme", Source.FORMS: "acme inc"},
    )

    strict = ConfidenceScorer().consistency_report([contact])
    lenient = ConfidenceScorer(consistency_threshold=0.0).consistency_report([contact])

    assert [item.field for item in strict.inconsistent] == ["company"]
    assert lenient.inconsistent == ()


@pytest.mark.parametrize(
    ("field_name", "importance"),
    [("email", "critical"), ("status", "critical"), ("name", "high"), ("company", "medium")],
)
def test_field_importance(field_name: str, importance: str) -> None:
    assert importance_of(field_name) == importance
