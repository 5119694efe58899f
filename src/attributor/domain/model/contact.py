"""Canonical contact identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from attributor.domain.model.enums import (
    RELATED_KINDS,
    EventKind,
    MatchConfidence,
    MatchMethod,
    Source,
)

if TYPE_CHECKING:
    from datetime import datetime

REQUIRED_CONTACT_FIELDS: tuple[str, ...] = ("name", "email", "phone", "company", "title")


class SourceRef(NamedTuple):
    source: Source
    external_id: str

    def __str__(self) -> str:
        return f"{self.source}:{self.external_id}"


@dataclass(eq=False, kw_only=True)
class Contact:
    """A resolved person across sources.

    ``field_values`` holds the latest normalized value per field and source, which the
    consistency report compares across sources. A retired contact keeps its row with
    ``merged_into`` pointing at the survivor.
    """

    id: int | None = None
    primary_email: str | None = None
    display_name: str | None = None
    source_ids: set[SourceRef] = field(default_factory=set[SourceRef])
    emails: set[str] = field(default_factory=set[str])
    field_values: dict[str, dict[Source, str]] = field(
        default_factory=dict[str, dict[Source, str]]
    )
    event_kinds: dict[Source, set[EventKind]] = field(
        default_factory=dict[Source, set[EventKind]]
    )
    match_methods: set[MatchMethod] = field(default_factory=set[MatchMethod])
    field_coverage: float = 0.0
    match_confidence: MatchConfidence = MatchConfidence.NONE
    merged_into: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.merged_into is None

    @property
    def sources(self) -> frozenset[Source]:
        return frozenset(ref.source for ref in self.source_ids)

    @property
    def has_related_records(self) -> bool:
        return any(kinds & RELATED_KINDS for kinds in self.event_kinds.values())

    def attach(self, ref: SourceRef) -> bool:
        """Add ``ref`` to the owned source ids; return whether it was new."""

        if ref in self.source_ids:
            return False
        self.source_ids = self.source_ids | {ref}
        return True

    def add_email(self, email: str) -> None:
        if email in self.emails:
            return
        self.emails = self.emails | {email}
        if self.primary_email is None:
            self.primary_email = email

    def observe(self, field_name: str, source: Source, value: str) -> None:
        values = dict(self.field_values.get(field_name, {}))
        values[source] = value
        self.field_values = {**self.field_values, field_name: values}
        if field_name == "name" and self.display_name is None:
            self.display_name = value

    def record_kind(self, source: Source, kind: EventKind) -> None:
        kinds = set(self.event_kinds.get(source, set()))
        kinds.add(kind)
        self.event_kinds = {**self.event_kinds, source: kinds}

    def record_method(self, method: MatchMethod) -> None:
        if method not in self.match_methods:
            self.match_methods = self.match_methods | {method}

    def known_fields(self) -> frozenset[str]:
        known = {name for name, values in self.field_values.items() if values}
        if self.emails:
            known.add("email")
        if self.display_name:
            known.add("name")
        return frozenset(known)

    def refresh_coverage(self) -> float:
        known = self.known_fields()
        present = sum(1 for name in REQUIRED_CONTACT_FIELDS if name in known)
        self.field_coverage = present / len(REQUIRED_CONTACT_FIELDS)
        return self.field_coverage

    def absorb(self, other: Contact) -> None:
        """Union ``other``'s identity data into this contact.

        Values already observed on the survivor win per field and source.
        """

        self.source_ids = self.source_ids | other.source_ids
        for email in sorted(other.emails):
            self.add_email(email)
        merged_values = {name: dict(values) for name, values in self.field_values.items()}
        for name, values in other.field_values.items():
            target = merged_values.setdefault(name, {})
            for source, value in values.items():
                target.setdefault(source, value)
        self.field_values = merged_values
        for source, kinds in other.event_kinds.items():
            for kind in kinds:
                self.record_kind(source, kind)
        self.match_methods = self.match_methods | other.match_methods | {MatchMethod.MERGE}
        if self.display_name is None:
            self.display_name = other.display_name

    def retire(self, survivor_id: int) -> None:
        self.merged_into = survivor_id
        self.source_ids = set()
        self.emails = set()
        self.primary_email = None
