"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

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
    from collections.abc import Sequence


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class ContactRepository(Repository[Contact], Protocol):
    """Persistence contract for contacts and their lookup indexes.

    ``add`` assigns ``id``. ``save`` brings the source, email and attribute indexes in
    line with the contact and raises ``MergeConflict`` when another live contact owns
    one of its source ids.
    """

    def get(self, contact_id: int) -> Contact | None: ...

    def find_by_source_id(self, ref: SourceRef) -> Contact | None: ...

    def find_by_email(self, email: str) -> Sequence[Contact]: ...

    def find_by_attribute(self, field: str, value: str) -> Sequence[Contact]: ...

    def save(self, contact: Contact) -> None: ...

    def live(self) -> Sequence[Contact]: ...


@runtime_checkable
class TouchpointRepository(Repository[Touchpoint], Protocol):
    def get(self, touchpoint_id: int) -> Touchpoint | None: ...

    def get_by_source_id(self, source: Source, external_id: str) -> Touchpoint | None: ...

    def for_contact(
        self, contact_id: int, family: TouchpointFamily | None = None
    ) -> Sequence[Touchpoint]: ...


@runtime_checkable
class DealRepository(Repository[Deal], Protocol):
    def get_by_source_id(self, source: Source, external_id: str) -> Deal | None: ...

    def for_contact(self, contact_id: int) -> Sequence[Deal]: ...

    def all(self) -> Sequence[Deal]: ...


@runtime_checkable
class AttributionRepository(Protocol):
    """Cache of derived attribution records, one per live contact."""

    def get(self, contact_id: int) -> AttributionRecord | None: ...

    def save(self, record: AttributionRecord) -> None: ...

    def delete(self, contact_id: int) -> None: ...

    def all(self) -> Sequence[AttributionRecord]: ...


@runtime_checkable
class CheckpointRepository(Protocol):
    def get(self, source: Source) -> SyncCheckpoint | None: ...

    def save(self, checkpoint: SyncCheckpoint) -> None: ...


@runtime_checkable
class RawEventLog(Protocol):
    """Append-only log keyed by ``(source, external_id, observed_at)``."""

    def append(self, event: RawEvent) -> bool: ...

    def count(self, source: Source | None = None) -> int: ...
