"""Resolve raw records onto canonical contacts.

Matching runs in a fixed priority order and the first hit wins:

1. the record's ``(source, external_id)`` is already owned by a contact, or a related
   record names its contact through a payload ``contact_id``;
2. the normalized email is known on a live contact;
3. the configured name matcher, restricted to contacts sharing a phone or company;
4. otherwise a new contact is created.

After the record is attached, any other live contact holding one of the same emails is
merged into the survivor chosen by ``merge_order``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from attributor.domain.clock import utcnow
from attributor.domain.errors import InvalidRecord, MergeConflict
from attributor.domain.fields import extract_fields
from attributor.domain.identity.matchers import SubstringNameMatcher
from attributor.domain.model import (
    RELATED_KINDS,
    Contact,
    EventKind,
    MatchMethod,
    Source,
    SourceRef,
)
from attributor.domain.normalize import normalize_name

if TYPE_CHECKING:
    from collections.abc import Iterable

    from attributor.domain.clock import Clock
    from attributor.domain.fields import RecordFields
    from attributor.domain.identity.matchers import NameMatcher
    from attributor.domain.model import RawEvent
    from attributor.domain.ports import ContactRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ValidatedEvent:
    event: RawEvent
    source: Source
    kind: EventKind
    ref: SourceRef


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving one record.

    ``merged`` lists the ids of contacts retired into ``contact`` during this call.
    """

    contact: Contact
    method: MatchMethod
    merged: tuple[int, ...] = ()


def validate_event(event: RawEvent) -> ValidatedEvent:
    """Reject records without an external id or with an unknown source or kind."""

    try:
        source = Source(event.source)
    except ValueError as exc:
        raise InvalidRecord(f"Unknown source {event.source!r}", source=event.source) from exc
    try:
        kind = EventKind(event.kind)
    except ValueError as exc:
        raise InvalidRecord(
            f"Unknown record kind {event.kind!r}",
            source=source,
            external_id=event.external_id,
        ) from exc
    external_id = (event.external_id or "").strip()
    if not external_id:
        raise InvalidRecord(f"{kind} record from {source} has no external id", source=source)
    return ValidatedEvent(
        event=event, source=source, kind=kind, ref=SourceRef(source, external_id)
    )


def identity_keys(validated: ValidatedEvent) -> tuple[str, ...]:
    """Lock keys covering every identity a record can create or merge."""

    keys = [f"ref:{validated.ref}"]
    try:
        fields = extract_fields(validated.event, validated.kind)
    except (ArithmeticError, ValueError) as exc:
        raise InvalidRecord(
            f"Unreadable {validated.kind} payload: {exc}",
            source=validated.source,
            external_id=validated.ref.external_id,
        ) from exc
    if fields.email is not None:
        keys.append(f"email:{fields.email}")
    if fields.contact_ref is not None:
        keys.append(f"ref:{SourceRef(validated.source, fields.contact_ref)}")
    return tuple(keys)


def follow(contacts: ContactRepository, contact_id: int) -> Contact | None:
    """Return the live contact for ``contact_id``, following merge pointers."""

    seen: set[int] = set()
    contact = contacts.get(contact_id)
    while contact is not None and contact.merged_into is not None:
        if contact.merged_into in seen:
            raise RuntimeError(f"Merge pointer cycle at contact {contact_id}")
        seen.add(contact.merged_into)
        contact = contacts.get(contact.merged_into)
    return contact


def merge_order(left: Contact, right: Contact) -> tuple[Contact, Contact]:
    """Return ``(survivor, loser)``: more source ids wins, then the lower id."""

    def rank(contact: Contact) -> tuple[int, int]:
        return (-len(contact.source_ids), contact.id if contact.id is not None else 0)

    return (left, right) if rank(left) <= rank(right) else (right, left)


def _name_variants(contact: Contact) -> set[str]:
    names = set(contact.field_values.get("name", {}).values())
    display = normalize_name(contact.display_name)
    if display is not None:
        names.add(display)
    return names


class IdentityResolver:
    def __init__(self, *, name_matcher: NameMatcher | None = None, clock: Clock = utcnow) -> None:
        self.name_matcher = name_matcher or SubstringNameMatcher()
        self._clock = clock

    def resolve(
        self,
        validated: ValidatedEvent,
        contacts: ContactRepository,
        *,
        fields: RecordFields | None = None,
    ) -> Resolution:
        fields = fields or extract_fields(validated.event, validated.kind)
        now = self._clock()

        match = self._match(validated, fields, contacts)
        if match is None:
            contact = Contact(created_at=now, updated_at=now)
            contacts.add(contact)
            method = MatchMethod.CREATED
            log.debug("Created contact %s for %s", contact.id, validated.ref)
        else:
            contact, method = match

        self._attach(contact, validated, fields, method)
        contact.updated_at = now

        merged: list[int] = []
        contact = self._save(contact, contacts, merged)
        contact = self._merge_shared_emails(contact, contacts, merged)
        contact.refresh_coverage()
        return Resolution(contact=contact, method=method, merged=tuple(merged))

    def _match(
        self,
        validated: ValidatedEvent,
        fields: RecordFields,
        contacts: ContactRepository,
    ) -> tuple[Contact, MatchMethod] | None:
        owner = contacts.find_by_source_id(validated.ref)
        if owner is None and validated.kind in RELATED_KINDS and fields.contact_ref:
            owner = contacts.find_by_source_id(SourceRef(validated.source, fields.contact_ref))
        if owner is not None:
            live = follow(contacts, owner.id) if owner.id is not None else owner
            if live is not None:
                return live, MatchMethod.SOURCE_ID

        if fields.email is not None:
            by_email = _live(contacts.find_by_email(fields.email))
            if by_email:
                survivor = by_email[0]
                for candidate in by_email[1:]:
                    survivor, _ = merge_order(survivor, candidate)
                return survivor, MatchMethod.EMAIL

        fuzzy = self._fuzzy_match(fields, contacts)
        if fuzzy is not None:
            return fuzzy, MatchMethod.FUZZY_NAME
        return None

    def _fuzzy_match(self, fields: RecordFields, contacts: ContactRepository) -> Contact | None:
        name = normalize_name(fields.name)
        if name is None:
            return None
        candidates: dict[int, Contact] = {}
        for field_name, value in (("phone", fields.phone), ("company", fields.company)):
            if value is None:
                continue
            for candidate in _live(contacts.find_by_attribute(field_name, value)):
                if candidate.id is not None:
                    candidates[candidate.id] = candidate

        best: tuple[float, int, Contact] | None = None
        for contact_id, candidate in sorted(candidates.items()):
            score = max(
                (self.name_matcher.score(name, known) for known in _name_variants(candidate)),
                default=0.0,
            )
            if score <= 0.0:
                continue
            if best is None or score > best[0]:
                best = (score, contact_id, candidate)
        if best is None:
            return None
        log.debug(
            "Fuzzy %s match %r -> contact %s (score %.2f)",
            self.name_matcher.name,
            fields.name,
            best[1],
            best[0],
        )
        return best[2]

    @staticmethod
    def _attach(
        contact: Contact,
        validated: ValidatedEvent,
        fields: RecordFields,
        method: MatchMethod,
    ) -> None:
        contact.attach(validated.ref)
        if fields.email is not None:
            contact.add_email(fields.email)
        if fields.name is not None and contact.display_name is None:
            contact.display_name = fields.name
        for field_name, value in fields.observed.items():
            contact.observe(field_name, validated.source, value)
        contact.record_kind(validated.source, validated.kind)
        contact.record_method(method)

    def _save(self, contact: Contact, contacts: ContactRepository, merged: list[int]) -> Contact:
        while True:
            try:
                contacts.save(contact)
            except MergeConflict as conflict:
                owner = follow(contacts, conflict.owner_id)
                if owner is None or owner is contact:
                    raise
                log.info("Resolving conflict on %s by merge", conflict.ref)
                contact = self._merge(contact, owner, contacts, merged)
            else:
                return contact

    def _merge_shared_emails(
        self,
        contact: Contact,
        contacts: ContactRepository,
        merged: list[int],
    ) -> Contact:
        # A merge can bring in emails shared with yet another contact; repeat until stable.
        while True:
            other = next(
                (
                    candidate
                    for email in sorted(contact.emails)
                    for candidate in _live(contacts.find_by_email(email))
                    if candidate.id != contact.id
                ),
                None,
            )
            if other is None:
                return contact
            contact = self._merge(contact, other, contacts, merged)
            contact.record_method(MatchMethod.EMAIL)
            contacts.save(contact)

    def _merge(
        self,
        left: Contact,
        right: Contact,
        contacts: ContactRepository,
        merged: list[int],
    ) -> Contact:
        survivor, loser = merge_order(left, right)
        if survivor.id is None or loser.id is None:
            raise RuntimeError("Contacts must be persisted before merging")
        survivor.absorb(loser)
        loser.retire(survivor.id)
        loser.updated_at = survivor.updated_at = self._clock()
        # Release the loser's index rows before the survivor claims them.
        contacts.save(loser)
        contacts.save(survivor)
        merged.append(loser.id)
        log.info("Merged contact %s into %s", loser.id, survivor.id)
        return survivor


def _live(contacts: Iterable[Contact]) -> list[Contact]:
    return [contact for contact in contacts if contact.is_live]
