"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Source(StrEnum):
    CRM = "crm"
    SCHEDULER = "scheduler"
    FORMS = "forms"


class EventKind(StrEnum):
    CONTACT = "contact"
    MEETING = "meeting"
    ACTIVITY = "activity"
    DEAL = "deal"
    FORM_SUBMISSION = "form_submission"


class MatchMethod(StrEnum):
    """How a record was attached to its contact."""

    CREATED = "created"
    SOURCE_ID = "source_id"
    EMAIL = "email"
    FUZZY_NAME = "fuzzy_name"
    MERGE = "merge"


class MatchConfidence(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TouchpointFamily(StrEnum):
    CALL = "call"
    FORM = "form"
    OTHER = "other"


class TouchpointType(StrEnum):
    CALL1 = "call1"
    CALL2 = "call2"
    CALL3 = "call3"
    ORIENTATION = "orientation"
    MENTORING = "mentoring"
    FORM = "form"
    OTHER = "other"

    @property
    def family(self) -> TouchpointFamily:
        if self is TouchpointType.FORM:
            return TouchpointFamily.FORM
        if self is TouchpointType.OTHER:
            return TouchpointFamily.OTHER
        return TouchpointFamily.CALL


class SyncStatus(StrEnum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


# Record kinds that tie activity to a contact rather than describe the contact itself.
RELATED_KINDS: frozenset[EventKind] = frozenset(
    {EventKind.MEETING, EventKind.ACTIVITY, EventKind.DEAL, EventKind.FORM_SUBMISSION}
)
