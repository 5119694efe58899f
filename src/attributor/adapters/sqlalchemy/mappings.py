"""SQLAlchemy mapping metadata for the attribution domain model."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from attributor.domain.model import (
    AttributionRecord,
    Contact,
    Deal,
    EventKind,
    MatchConfidence,
    MatchMethod,
    Source,
    SourceRef,
    SyncCheckpoint,
    SyncStatus,
    Touchpoint,
    TouchpointFamily,
    TouchpointType,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class _JsonColumn[T](TypeDecorator[T]):
    """JSON text column with a typed codec; subclasses convert to and from plain JSON."""

    impl = Text
    cache_ok = True

    def encode(self, value: T) -> object:
        raise NotImplementedError

    def decode(self, loaded: object) -> T:
        raise NotImplementedError

    def process_bind_param(self, value: T | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(self.encode(value), sort_keys=True, separators=(",", ":"))

    def process_result_value(self, value: str | None, dialect: Dialect) -> T:
        _ = dialect
        loaded: object = json.loads(value) if value else None
        return self.decode(loaded)


class SourceRefSetType(_JsonColumn[set[SourceRef]]):
    def encode(self, value: set[SourceRef]) -> object:
        return sorted([str(ref.source), ref.external_id] for ref in value)

    def decode(self, loaded: object) -> set[SourceRef]:
        if not isinstance(loaded, list):
            return set()
        items = cast(list[Any], loaded)
        return {SourceRef(Source(item[0]), str(item[1])) for item in items}


class StringSetType(_JsonColumn[set[str]]):
    def encode(self, value: set[str]) -> object:
        return sorted(value)

    def decode(self, loaded: object) -> set[str]:
        if not isinstance(loaded, list):
            return set()
        return {str(item) for item in cast(list[Any], loaded)}


class MatchMethodSetType(_JsonColumn[set[MatchMethod]]):
    def encode(self, value: set[MatchMethod]) -> object:
        return sorted(str(method) for method in value)

    def decode(self, loaded: object) -> set[MatchMethod]:
        if not isinstance(loaded, list):
            return set()
        return {MatchMethod(item) for item in cast(list[Any], loaded)}


class SourceKindsType(_JsonColumn[dict[Source, set[EventKind]]]):
    def encode(self, value: dict[Source, set[EventKind]]) -> object:
        return {str(source): sorted(str(kind) for kind in kinds) for source, kinds in value.items()}

    def decode(self, loaded: object) -> dict[Source, set[EventKind]]:
        if not isinstance(loaded, dict):
            return {}
        mapping = cast(dict[str, list[Any]], loaded)
        return {Source(key): {EventKind(kind) for kind in kinds} for key, kinds in mapping.items()}


class FieldValuesType(_JsonColumn[dict[str, dict[Source, str]]]):
    def encode(self, value: dict[str, dict[Source, str]]) -> object:
        return {
            field: {str(source): text for source, text in values.items()}
            for field, values in value.items()
        }

    def decode(self, loaded: object) -> dict[str, dict[Source, str]]:
        if not isinstance(loaded, dict):
            return {}
        mapping = cast(dict[str, dict[str, Any]], loaded)
        return {
            field: {Source(source): str(text) for source, text in values.items()}
            for field, values in mapping.items()
        }


class CreditDistributionType(_JsonColumn[dict[Source, float]]):
    def encode(self, value: dict[Source, float]) -> object:
        return {str(source): share for source, share in value.items()}

    def decode(self, loaded: object) -> dict[Source, float]:
        if not isinstance(loaded, dict):
            return {}
        mapping = cast(dict[str, Any], loaded)
        return {Source(source): float(share) for source, share in mapping.items()}


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

contact_table = Table(
    "contact",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("primary_email", String, nullable=True),
    Column("display_name", String, nullable=True),
    Column("source_ids", SourceRefSetType, nullable=False),
    Column("emails", StringSetType, nullable=False),
    Column("field_values", FieldValuesType, nullable=False),
    Column("event_kinds", SourceKindsType, nullable=False),
    Column("match_methods", MatchMethodSetType, nullable=False),
    Column("field_coverage", Float, nullable=False, default=0.0),
    Column("match_confidence", Enum(MatchConfidence, native_enum=False), nullable=False),
    Column("merged_into", Integer, ForeignKey("contact.id"), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

touchpoint_table = Table(
    "touchpoint",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("contact_id", Integer, ForeignKey("contact.id"), nullable=False),
    Column("source", Enum(Source, native_enum=False), nullable=False),
    Column("external_id", String, nullable=False),
    Column("type", Enum(TouchpointType, native_enum=False), nullable=False),
    Column("family", Enum(TouchpointFamily, native_enum=False), nullable=False),
    Column("sequence_number", Integer, nullable=False),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("title", String, nullable=True),
    UniqueConstraint("source", "external_id", name="uq_touchpoint_source_external_id"),
    Index("ix_touchpoint_contact_family", "contact_id", "family"),
)

deal_table = Table(
    "deal",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("contact_id", Integer, ForeignKey("contact.id"), nullable=False),
    Column("source", Enum(Source, native_enum=False), nullable=False),
    Column("external_id", String, nullable=False),
    Column("title", String, nullable=True),
    Column("status", String, nullable=True),
    Column("value", Float, nullable=True),
    Column("pipeline", String, nullable=True),
    Column("closed_at", UTCDateTime(), nullable=True),
    Column("currency", String, nullable=True),
    Column("stage", String, nullable=True),
    Column("owner", String, nullable=True),
    UniqueConstraint("source", "external_id", name="uq_deal_source_external_id"),
    Index("ix_deal_contact_id", "contact_id"),
)

attribution_record_table = Table(
    "attribution_record",
    mapper_registry.metadata,
    Column("contact_id", Integer, ForeignKey("contact.id"), primary_key=True),
    Column("first_touch_id", Integer, nullable=True),
    Column("last_touch_id", Integer, nullable=True),
    Column("credit_distribution", CreditDistributionType, nullable=False),
    Column("converted", Boolean, nullable=False, default=False),
    Column("days_to_conversion", Integer, nullable=True),
    Column("model", String, nullable=False),
    Column("computed_at", UTCDateTime(), nullable=True),
)

sync_checkpoint_table = Table(
    "sync_checkpoint",
    mapper_registry.metadata,
    Column("source", Enum(Source, native_enum=False), primary_key=True),
    Column("cursor", String, nullable=True),
    Column("page_offset", Integer, nullable=False, default=0),
    Column("processed_count", Integer, nullable=False, default=0),
    Column("total", Integer, nullable=True),
    Column("status", Enum(SyncStatus, native_enum=False), nullable=False),
    Column("resume_token_id", String, nullable=True),
    Column("last_attempt_at", UTCDateTime(), nullable=True),
    Column("last_error", Text, nullable=True),
)

# Lookup indexes (Core only) ----------------------------------------------------

# The primary key is the cross-process guard: one live owner per source id.
contact_source_index_table = Table(
    "contact_source_index",
    mapper_registry.metadata,
    Column("source", Enum(Source, native_enum=False), primary_key=True),
    Column("external_id", String, primary_key=True),
    Column("contact_id", Integer, ForeignKey("contact.id"), nullable=False, index=True),
)

contact_email_index_table = Table(
    "contact_email_index",
    mapper_registry.metadata,
    Column("email", String, primary_key=True),
    Column("contact_id", Integer, ForeignKey("contact.id"), primary_key=True),
)

contact_attribute_index_table = Table(
    "contact_attribute_index",
    mapper_registry.metadata,
    Column("field", String, primary_key=True),
    Column("value", String, primary_key=True),
    Column("contact_id", Integer, ForeignKey("contact.id"), primary_key=True),
)

raw_event_table = Table(
    "raw_event",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", Enum(Source, native_enum=False), nullable=False),
    Column("external_id", String, nullable=False),
    Column("kind", String, nullable=False),
    Column("payload", Text, nullable=False),
    Column("observed_at", UTCDateTime(), nullable=False),
    UniqueConstraint(
        "source", "external_id", "observed_at", name="uq_raw_event_source_external_id_observed"
    ),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Contact, contact_table)
    mapper_registry.map_imperatively(Touchpoint, touchpoint_table)
    mapper_registry.map_imperatively(Deal, deal_table)
    mapper_registry.map_imperatively(AttributionRecord, attribution_record_table)
    mapper_registry.map_imperatively(SyncCheckpoint, sync_checkpoint_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
