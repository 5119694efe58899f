"""Extract comparable fields from heterogeneous source payloads.

Each source names the same facts differently (``invitee_email`` on a meeting,
``contact_email`` on an activity). The alias tables below map payload keys onto the
tracked field names used for matching, consistency and completeness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from attributor.domain.model import EventKind
from attributor.domain.normalize import (
    normalize_amount,
    normalize_date,
    normalize_email,
    normalize_name,
    normalize_phone,
    normalize_text,
    parse_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from attributor.domain.model import RawEvent

type Aliases = dict[str, tuple[str, ...]]

CONSISTENCY_FIELDS: tuple[str, ...] = (
    "name",
    "email",
    "phone",
    "company",
    "title",
    "deal_title",
    "value",
    "status",
    "close_date",
    "pipeline",
)

_CONTACT_ALIASES: Aliases = {
    "name": ("name", "display_name", "full_name"),
    "email": ("email", "primary_email"),
    "phone": ("phone", "phone_number", "mobile"),
    "company": ("company", "company_name", "organization"),
    "title": ("title", "job_title"),
    "lead_source": ("lead_source", "source"),
    "lead_status": ("lead_status", "status"),
    "owner": ("owner", "owner_name"),
}
_MEETING_ALIASES: Aliases = {
    "name": ("invitee_name",),
    "email": ("invitee_email", "email"),
    "phone": ("invitee_phone", "phone"),
    "company": ("invitee_company", "company"),
}
_ACTIVITY_ALIASES: Aliases = {
    "name": ("contact_name",),
    "email": ("contact_email", "email"),
    "phone": ("contact_phone", "phone"),
}
_FORM_ALIASES: Aliases = {
    "name": ("name", "respondent_name", "full_name"),
    "email": ("email", "respondent_email"),
    "phone": ("phone", "phone_number"),
    "company": ("company", "company_name"),
    "title": ("job_title",),
}
_DEAL_ALIASES: Aliases = {
    "name": ("contact_name",),
    "email": ("contact_email", "email"),
    "deal_title": ("deal_title", "title", "name"),
    "value": ("value", "amount"),
    "status": ("status",),
    "close_date": ("close_date", "closed_at", "date_won"),
    "pipeline": ("pipeline",),
    "currency": ("currency",),
    "stage": ("stage",),
    "owner": ("owner", "owner_name"),
}
_ALIASES: dict[EventKind, Aliases] = {
    EventKind.CONTACT: _CONTACT_ALIASES,
    EventKind.MEETING: _MEETING_ALIASES,
    EventKind.ACTIVITY: _ACTIVITY_ALIASES,
    EventKind.FORM_SUBMISSION: _FORM_ALIASES,
    EventKind.DEAL: _DEAL_ALIASES,
}
_EVENT_NAME_KEYS: dict[EventKind, tuple[str, ...]] = {
    EventKind.MEETING: ("name", "event_name", "title"),
    EventKind.ACTIVITY: ("title", "event_name", "subject", "name"),
    EventKind.FORM_SUBMISSION: ("form_name", "title", "event_name"),
}
_OCCURRED_AT_KEYS = ("start_time", "occurred_at", "submitted_at", "created_at", "date")

_NORMALIZERS: dict[str, Callable[[object], str | None]] = {
    "name": normalize_name,
    "email": normalize_email,
    "phone": normalize_phone,
    "value": normalize_amount,
    "close_date": normalize_date,
}
# Deal fields that are only tracked on the deal itself, not on the contact.
_DEAL_ONLY_FIELDS = frozenset({"currency", "stage", "owner"})


@dataclass(frozen=True, slots=True)
class RecordFields:
    """Normalized view of one raw event's payload."""

    email: str | None
    name: str | None
    phone: str | None
    company: str | None
    contact_ref: str | None
    event_name: str | None
    activity_type: str | None
    occurred_at: datetime
    observed: dict[str, str] = field(default_factory=dict[str, str])


@dataclass(frozen=True, slots=True)
class DealFields:
    title: str | None
    status: str | None
    value: float | None
    pipeline: str | None
    closed_at: datetime | None
    currency: str | None
    stage: str | None
    owner: str | None


def first_value(payload: Mapping[str, object], keys: tuple[str, ...]) -> object | None:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _display(value: object | None) -> str | None:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _display_name(payload: Mapping[str, object], aliases: Aliases) -> str | None:
    name = _display(first_value(payload, aliases.get("name", ())))
    if name is not None:
        return name
    if aliases is _CONTACT_ALIASES or aliases is _FORM_ALIASES:
        parts = [_display(payload.get("first_name")), _display(payload.get("last_name"))]
        joined = " ".join(part for part in parts if part)
        return joined or None
    return None


def _email(value: object | None) -> str | None:
    if isinstance(value, list | tuple):
        for item in value:
            email = normalize_email(item)
            if email is not None:
                return email
        return None
    return normalize_email(value)


def extract_fields(event: RawEvent, kind: EventKind) -> RecordFields:
    """Map ``event.payload`` onto tracked field names for ``kind``."""

    payload = event.payload
    aliases = _ALIASES[kind]
    name = _display_name(payload, aliases)
    email = _email(first_value(payload, aliases["email"]))
    phone = normalize_phone(first_value(payload, aliases.get("phone", ())))
    company = normalize_text(first_value(payload, aliases.get("company", ())))

    observed: dict[str, str] = {}
    for field_name, keys in aliases.items():
        if kind is EventKind.DEAL and field_name in _DEAL_ONLY_FIELDS:
            continue
        if field_name == "name":
            value = normalize_name(name)
        elif field_name == "email":
            value = email
        else:
            normalizer = _NORMALIZERS.get(field_name, normalize_text)
            value = normalizer(first_value(payload, keys))
        if value is not None:
            observed[field_name] = value

    ref = first_value(payload, ("contact_id",)) if kind is not EventKind.CONTACT else None
    occurred_at = parse_timestamp(first_value(payload, _OCCURRED_AT_KEYS)) or event.observed_at
    return RecordFields(
        email=email,
        name=name,
        phone=phone,
        company=company,
        contact_ref=_display(ref),
        event_name=_display(first_value(payload, _EVENT_NAME_KEYS.get(kind, ()))),
        activity_type=normalize_text(first_value(payload, ("activity_type", "type"))),
        occurred_at=occurred_at,
        observed=observed,
    )


def extract_deal(event: RawEvent) -> DealFields:
    payload = event.payload
    amount = normalize_amount(first_value(payload, _DEAL_ALIASES["value"]))
    return DealFields(
        title=_display(first_value(payload, _DEAL_ALIASES["deal_title"])),
        status=_display(first_value(payload, _DEAL_ALIASES["status"])),
        value=float(amount) if amount is not None else None,
        pipeline=_display(first_value(payload, _DEAL_ALIASES["pipeline"])),
        closed_at=parse_timestamp(first_value(payload, _DEAL_ALIASES["close_date"])),
        currency=_display(first_value(payload, _DEAL_ALIASES["currency"])),
        stage=_display(first_value(payload, _DEAL_ALIASES["stage"])),
        owner=_display(first_value(payload, _DEAL_ALIASES["owner"])),
    )
