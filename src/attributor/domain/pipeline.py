"""Per-record ingestion: resolve, classify, score and recompute attribution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from attributor.domain.attribution import AttributionCalculator
from attributor.domain.confidence import ConfidenceScorer
from attributor.domain.fields import extract_deal, extract_fields
from attributor.domain.identity import IdentityResolver, validate_event
from attributor.domain.model import Deal, EventKind, TouchpointFamily
from attributor.domain.touchpoints import TouchpointClassifier, resequence

if TYPE_CHECKING:
    from attributor.domain.identity import ValidatedEvent
    from attributor.domain.model import Contact, MatchConfidence, MatchMethod, RawEvent
    from attributor.domain.ports import AttributionRepositories

log = logging.getLogger(__name__)

_TOUCHPOINT_KINDS = frozenset({EventKind.MEETING, EventKind.ACTIVITY, EventKind.FORM_SUBMISSION})


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    contact_id: int
    method: MatchMethod
    match_confidence: MatchConfidence
    merged: tuple[int, ...] = ()
    touchpoint_id: int | None = None
    deal_id: int | None = None
    appended: bool = True


class IngestionPipeline:
    """Run one raw event through the core, inside the caller's unit of work.

    The caller commits; nothing here opens or closes transactions.
    """

    def __init__(
        self,
        *,
        resolver: IdentityResolver | None = None,
        scorer: ConfidenceScorer | None = None,
        classifier: TouchpointClassifier | None = None,
        calculator: AttributionCalculator | None = None,
    ) -> None:
        self.resolver = resolver or IdentityResolver()
        self.scorer = scorer or ConfidenceScorer()
        self.classifier = classifier or TouchpointClassifier()
        self.calculator = calculator or AttributionCalculator()

    def process(
        self,
        event: RawEvent,
        repositories: AttributionRepositories,
        *,
        validated: ValidatedEvent | None = None,
    ) -> IngestOutcome:
        validated = validated or validate_event(event)
        fields = extract_fields(event, validated.kind)

        appended = repositories.raw_events.append(event)
        resolution = self.resolver.resolve(validated, repositories.contacts, fields=fields)
        contact = resolution.contact
        if contact.id is None:
            raise RuntimeError("Resolved contact has no id")

        affected: set[int] = {contact.id}
        for loser_id in resolution.merged:
            self._reassign(loser_id, contact.id, repositories)
            affected.add(loser_id)

        touchpoint_id: int | None = None
        deal_id: int | None = None
        if validated.kind in _TOUCHPOINT_KINDS:
            classification = self.classifier.classify(
                validated, contact, fields, repositories.touchpoints
            )
            touchpoint_id = classification.touchpoint.id
            affected |= classification.affected_contacts
        elif validated.kind is EventKind.DEAL:
            deal = self._upsert_deal(validated, contact, repositories)
            deal_id = deal.id

        score = self.scorer.apply(contact)
        repositories.contacts.save(contact)
        for contact_id in sorted(affected):
            self.calculator.recompute(contact_id, repositories)

        return IngestOutcome(
            contact_id=contact.id,
            method=resolution.method,
            match_confidence=score.match_confidence,
            merged=resolution.merged,
            touchpoint_id=touchpoint_id,
            deal_id=deal_id,
            appended=appended,
        )

    @staticmethod
    def _reassign(loser_id: int, survivor_id: int, repositories: AttributionRepositories) -> None:
        for touchpoint in repositories.touchpoints.for_contact(loser_id):
            touchpoint.contact_id = survivor_id
        for deal in repositories.deals.for_contact(loser_id):
            deal.contact_id = survivor_id
        for family in TouchpointFamily:
            resequence(repositories.touchpoints, survivor_id, family)
        log.debug("Moved touchpoints and deals of contact %s to %s", loser_id, survivor_id)

    def _upsert_deal(
        self,
        validated: ValidatedEvent,
        contact: Contact,
        repositories: AttributionRepositories,
    ) -> Deal:
        if contact.id is None:
            raise RuntimeError("Resolved contact has no id")
        values = extract_deal(validated.event)
        external_id = validated.ref.external_id
        deal = repositories.deals.get_by_source_id(validated.source, external_id)
        if deal is None:
            deal = Deal(contact_id=contact.id, source=validated.source, external_id=external_id)
            repositories.deals.add(deal)
        was_won = deal.is_won(self.calculator.won_statuses)
        deal.contact_id = contact.id
        deal.title = values.title
        deal.status = values.status
        deal.value = values.value
        deal.pipeline = values.pipeline
        deal.closed_at = values.closed_at
        deal.currency = values.currency
        deal.stage = values.stage
        deal.owner = values.owner
        if deal.is_won(self.calculator.won_statuses) != was_won:
            log.info("Deal %s:%s conversion changed to %s", deal.source, external_id, not was_won)
        return deal

