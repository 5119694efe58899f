"""Translate feed payloads into domain raw events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from attributor.domain.clock import ensure_utc
from attributor.domain.model import EventKind, RawEvent
from attributor.domain.ports import Page

if TYPE_CHECKING:
    from datetime import datetime

    from attributor.domain.model import Source

    from .schema import FeedPage, FeedRecord


def _kind(value: str) -> EventKind | str:
    lowered = value.strip().lower()
    try:
        return EventKind(lowered)
    except ValueError:
        # Left as delivered; ingestion rejects and counts it.
        return lowered


def to_raw_event(record: FeedRecord, source: Source, *, observed_at: datetime) -> RawEvent:
    return RawEvent(
        source=source,
        external_id=record.external_id,
        kind=_kind(record.kind),
        observed_at=ensure_utc(record.observed_at) if record.observed_at else observed_at,
        payload=record.payload,
    )


def to_page(feed: FeedPage, source: Source, *, observed_at: datetime) -> Page:
    return Page(
        records=tuple(
            to_raw_event(record, source, observed_at=observed_at) for record in feed.records
        ),
        next_cursor=feed.next_cursor,
        total=feed.total,
    )
