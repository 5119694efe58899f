"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, func, insert, select

from attributor.adapters.sqlalchemy.mappings import (
    attribution_record_table,
    contact_attribute_index_table,
    contact_email_index_table,
    contact_source_index_table,
    contact_table,
    deal_table,
    raw_event_table,
    touchpoint_table,
)
from attributor.domain.errors import MergeConflict
from attributor.domain.model import (
    AttributionRecord,
    Contact,
    Deal,
    RawEvent,
    Source,
    SourceRef,
    SyncCheckpoint,
    Touchpoint,
    TouchpointFamily,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.orm import Session

# Contact attributes that narrow fuzzy name matching.
INDEXED_ATTRIBUTES: tuple[str, ...] = ("phone", "company")


class SqlAlchemyContactRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Contact) -> None:
        self.session.add(entity)
        self.session.flush()

    def get(self, contact_id: int) -> Contact | None:
        return self.session.get(Contact, contact_id)

    def find_by_source_id(self, ref: SourceRef) -> Contact | None:
        stmt = (
            select(contact_source_index_table.c.contact_id)
            .where(contact_source_index_table.c.source == ref.source)
            .where(contact_source_index_table.c.external_id == ref.external_id)
        )
        contact_id = self.session.execute(stmt).scalar_one_or_none()
        if contact_id is None:
            return None
        return self.get(contact_id)

    def find_by_email(self, email: str) -> Sequence[Contact]:
        stmt = (
            select(contact_email_index_table.c.contact_id)
            .where(contact_email_index_table.c.email == email)
            .order_by(contact_email_index_table.c.contact_id)
        )
        return self._load(self.session.execute(stmt).scalars())

    def find_by_attribute(self, field: str, value: str) -> Sequence[Contact]:
        stmt = (
            select(contact_attribute_index_table.c.contact_id)
            .where(contact_attribute_index_table.c.field == field)
            .where(contact_attribute_index_table.c.value == value)
            .order_by(contact_attribute_index_table.c.contact_id)
        )
        return self._load(self.session.execute(stmt).scalars())

    def live(self) -> Sequence[Contact]:
        stmt = (
            select(Contact)
            .where(contact_table.c.merged_into.is_(None))
            .order_by(contact_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def save(self, contact: Contact) -> None:
        if contact.id is None:
            self.add(contact)
        contact_id = cast(int, contact.id)
        if contact.is_live:
            for ref in sorted(contact.source_ids, key=str):
                owner_id = self._owner_of(ref)
                if owner_id is not None and owner_id != contact_id:
                    raise MergeConflict(ref, owner_id)
        self.session.add(contact)
        self._sync_source_index(contact_id, contact)
        self._sync_email_index(contact_id, contact)
        self._sync_attribute_index(contact_id, contact)
        self.session.flush()

    def _load(self, contact_ids: Iterable[int]) -> list[Contact]:
        contacts: list[Contact] = []
        for contact_id in list(contact_ids):
            contact = self.get(contact_id)
            if contact is not None:
                contacts.append(contact)
        return contacts

    def _owner_of(self, ref: SourceRef) -> int | None:
        stmt = (
            select(contact_source_index_table.c.contact_id)
            .where(contact_source_index_table.c.source == ref.source)
            .where(contact_source_index_table.c.external_id == ref.external_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _sync_source_index(self, contact_id: int, contact: Contact) -> None:
        table = contact_source_index_table
        rows = self.session.execute(
            select(table.c.source, table.c.external_id).where(table.c.contact_id == contact_id)
        )
        existing = {SourceRef(Source(source), external_id) for source, external_id in rows}
        wanted = set(contact.source_ids) if contact.is_live else set[SourceRef]()
        for ref in existing - wanted:
            self.session.execute(
                delete(table)
                .where(table.c.source == ref.source)
                .where(table.c.external_id == ref.external_id)
            )
        for ref in sorted(wanted - existing, key=str):
            self.session.execute(
                insert(table).values(
                    source=ref.source, external_id=ref.external_id, contact_id=contact_id
                )
            )

    def _sync_email_index(self, contact_id: int, contact: Contact) -> None:
        table = contact_email_index_table
        existing = set(
            self.session.execute(
                select(table.c.email).where(table.c.contact_id == contact_id)
            ).scalars()
        )
        wanted = set(contact.emails) if contact.is_live else set[str]()
        stale = existing - wanted
        if stale:
            self.session.execute(
                delete(table)
                .where(table.c.contact_id == contact_id)
                .where(table.c.email.in_(stale))
            )
        for email in sorted(wanted - existing):
            self.session.execute(insert(table).values(email=email, contact_id=contact_id))

    def _sync_attribute_index(self, contact_id: int, contact: Contact) -> None:
        table = contact_attribute_index_table
        rows = self.session.execute(
            select(table.c.field, table.c.value).where(table.c.contact_id == contact_id)
        )
        existing = {(field, value) for field, value in rows}
        wanted: set[tuple[str, str]] = set()
        if contact.is_live:
            for field in INDEXED_ATTRIBUTES:
                for value in contact.field_values.get(field, {}).values():
                    wanted.add((field, value))
        for field, value in existing - wanted:
            self.session.execute(
                delete(table)
                .where(table.c.contact_id == contact_id)
                .where(table.c.field == field)
                .where(table.c.value == value)
            )
        for field, value in sorted(wanted - existing):
            self.session.execute(
                insert(table).values(field=field, value=value, contact_id=contact_id)
            )


class SqlAlchemyTouchpointRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Touchpoint) -> None:
        self.session.add(entity)
        self.session.flush()

    def get(self, touchpoint_id: int) -> Touchpoint | None:
        return self.session.get(Touchpoint, touchpoint_id)

    def get_by_source_id(self, source: Source, external_id: str) -> Touchpoint | None:
        stmt = (
            select(Touchpoint)
            .where(touchpoint_table.c.source == source)
            .where(touchpoint_table.c.external_id == external_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def for_contact(
        self, contact_id: int, family: TouchpointFamily | None = None
    ) -> Sequence[Touchpoint]:
        stmt = select(Touchpoint).where(touchpoint_table.c.contact_id == contact_id)
        if family is not None:
            stmt = stmt.where(touchpoint_table.c.family == family)
        stmt = stmt.order_by(
            touchpoint_table.c.occurred_at,
            touchpoint_table.c.source,
            touchpoint_table.c.external_id,
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyDealRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Deal) -> None:
        self.session.add(entity)
        self.session.flush()

    def get_by_source_id(self, source: Source, external_id: str) -> Deal | None:
        stmt = (
            select(Deal)
            .where(deal_table.c.source == source)
            .where(deal_table.c.external_id == external_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def for_contact(self, contact_id: int) -> Sequence[Deal]:
        stmt = select(Deal).where(deal_table.c.contact_id == contact_id).order_by(deal_table.c.id)
        return list(self.session.execute(stmt).scalars())

    def all(self) -> Sequence[Deal]:
        return list(self.session.execute(select(Deal).order_by(deal_table.c.id)).scalars())


class SqlAlchemyAttributionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, contact_id: int) -> AttributionRecord | None:
        return self.session.get(AttributionRecord, contact_id)

    def save(self, record: AttributionRecord) -> None:
        existing = self.get(record.contact_id)
        if existing is None or existing is record:
            self.session.add(record)
            return
        existing.first_touch_id = record.first_touch_id
        existing.last_touch_id = record.last_touch_id
        existing.credit_distribution = dict(record.credit_distribution)
        existing.converted = record.converted
        existing.days_to_conversion = record.days_to_conversion
        existing.model = record.model
        existing.computed_at = record.computed_at

    def delete(self, contact_id: int) -> None:
        existing = self.get(contact_id)
        if existing is not None:
            self.session.delete(existing)

    def all(self) -> Sequence[AttributionRecord]:
        stmt = select(AttributionRecord).order_by(attribution_record_table.c.contact_id)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyCheckpointRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, source: Source) -> SyncCheckpoint | None:
        return self.session.get(SyncCheckpoint, source)

    def save(self, checkpoint: SyncCheckpoint) -> None:
        self.session.add(checkpoint)


class SqlAlchemyRawEventLog:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, event: RawEvent) -> bool:
        """Store ``event`` unless an identical key was already logged."""

        table = raw_event_table
        external_id = event.external_id or ""
        stmt = (
            select(table.c.id)
            .where(table.c.source == event.source)
            .where(table.c.external_id == external_id)
            .where(table.c.observed_at == event.observed_at)
            .limit(1)
        )
        if self.session.execute(stmt).scalar_one_or_none() is not None:
            return False
        self.session.execute(
            insert(table).values(
                source=event.source,
                external_id=external_id,
                kind=str(event.kind),
                payload=json.dumps(dict(event.payload), sort_keys=True, default=str),
                observed_at=event.observed_at,
            )
        )
        return True

    def count(self, source: Source | None = None) -> int:
        stmt = select(func.count()).select_from(raw_event_table)
        if source is not None:
            stmt = stmt.where(raw_event_table.c.source == source)
        return int(self.session.execute(stmt).scalar_one())
