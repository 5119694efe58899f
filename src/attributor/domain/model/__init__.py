"""Public domain model surface."""

from __future__ import annotations

from attributor.domain.model.attribution import AttributionRecord
from attributor.domain.model.checkpoint import SyncCheckpoint
from attributor.domain.model.contact import REQUIRED_CONTACT_FIELDS, Contact, SourceRef
from attributor.domain.model.deal import Deal
from attributor.domain.model.enums import (
    RELATED_KINDS,
    EventKind,
    MatchConfidence,
    MatchMethod,
    Source,
    SyncStatus,
    TouchpointFamily,
    TouchpointType,
)
from attributor.domain.model.events import RawEvent
from attributor.domain.model.touchpoint import Touchpoint

__all__ = [
    "RELATED_KINDS",
    "REQUIRED_CONTACT_FIELDS",
    "AttributionRecord",
    "Contact",
    "Deal",
    "EventKind",
    "MatchConfidence",
    "MatchMethod",
    "RawEvent",
    "Source",
    "SourceRef",
    "SyncCheckpoint",
    "SyncStatus",
    "Touchpoint",
    "TouchpointFamily",
    "TouchpointType",
]
