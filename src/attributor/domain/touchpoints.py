"""Classify interactions into touchpoint types and keep sequences gap-free."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from attributor.domain.model import EventKind, Touchpoint, TouchpointFamily, TouchpointType

if TYPE_CHECKING:
    from attributor.domain.fields import RecordFields
    from attributor.domain.identity.resolver import ValidatedEvent
    from attributor.domain.model import Contact
    from attributor.domain.ports import TouchpointRepository

log = logging.getLogger(__name__)

# Checked in order; the first rule with a matching keyword wins.
KEYWORD_RULES: tuple[tuple[tuple[str, ...], TouchpointType], ...] = (
    (("intro", "introduction"), TouchpointType.CALL1),
    (("solution",), TouchpointType.CALL2),
    (("next step", "next-step"), TouchpointType.CALL3),
    (("orientation",), TouchpointType.ORIENTATION),
    (("mentor", "mentee"), TouchpointType.MENTORING),
)
CALL_ACTIVITY_TYPES = frozenset({"call", "phone_call", "phone call", "meeting", "video_call"})


def infer_type(
    event_name: str | None,
    *,
    fallback: TouchpointType = TouchpointType.CALL1,
) -> TouchpointType:
    if not event_name:
        return fallback
    lowered = event_name.casefold()
    for keywords, touchpoint_type in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return touchpoint_type
    return fallback


def resequence(
    touchpoints: TouchpointRepository,
    contact_id: int,
    family: TouchpointFamily,
) -> list[Touchpoint]:
    """Re-derive ``1..N`` for one contact and family from the full sorted set."""

    ordered = sorted(touchpoints.for_contact(contact_id, family), key=lambda tp: tp.sort_key)
    for number, touchpoint in enumerate(ordered, start=1):
        if touchpoint.sequence_number != number:
            touchpoint.sequence_number = number
    return ordered


@dataclass(slots=True)
class Classification:
    touchpoint: Touchpoint
    created: bool
    affected_contacts: set[int] = field(default_factory=set[int])


class TouchpointClassifier:
    def __init__(self, *, fallback: TouchpointType = TouchpointType.CALL1) -> None:
        self.fallback = fallback

    def touchpoint_type(self, kind: EventKind, fields: RecordFields) -> TouchpointType:
        if kind is EventKind.FORM_SUBMISSION:
            return TouchpointType.FORM
        if (
            kind is EventKind.ACTIVITY
            and fields.activity_type is not None
            and fields.activity_type not in CALL_ACTIVITY_TYPES
        ):
            return TouchpointType.OTHER
        return infer_type(fields.event_name, fallback=self.fallback)

    def classify(
        self,
        validated: ValidatedEvent,
        contact: Contact,
        fields: RecordFields,
        touchpoints: TouchpointRepository,
    ) -> Classification:
        if contact.id is None:
            raise ValueError("Contact must be persisted before classifying touchpoints")
        touchpoint_type = self.touchpoint_type(validated.kind, fields)
        external_id = validated.ref.external_id

        existing = touchpoints.get_by_source_id(validated.source, external_id)
        stale: tuple[int, TouchpointFamily] | None = None
        if existing is None:
            touchpoint = Touchpoint(
                contact_id=contact.id,
                source=validated.source,
                external_id=external_id,
                type=touchpoint_type,
                family=touchpoint_type.family,
                occurred_at=fields.occurred_at,
                title=fields.event_name,
            )
            touchpoints.add(touchpoint)
            created = True
        else:
            touchpoint = existing
            if (existing.contact_id, existing.family) != (contact.id, touchpoint_type.family):
                stale = (existing.contact_id, existing.family)
            touchpoint.contact_id = contact.id
            touchpoint.type = touchpoint_type
            touchpoint.family = touchpoint_type.family
            touchpoint.occurred_at = fields.occurred_at
            touchpoint.title = fields.event_name
            created = False

        affected = {contact.id}
        resequence(touchpoints, contact.id, touchpoint.family)
        if stale is not None:
            resequence(touchpoints, *stale)
            affected.add(stale[0])
        log.debug(
            "%s touchpoint %s:%s as %s #%d",
            "Created" if created else "Updated",
            validated.source,
            external_id,
            touchpoint.type,
            touchpoint.sequence_number,
        )
        return Classification(touchpoint=touchpoint, created=created, affected_contacts=affected)
