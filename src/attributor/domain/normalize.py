"""Value normalization used for matching and cross-source comparison."""

from __future__ import annotations

import re
import unicodedata
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation

from attributor.domain.clock import ensure_utc

_GMAIL_DOMAINS = frozenset({"gmail.com", "googlemail.com"})
_NON_DIGITS = re.compile(r"\D")
_MIN_PHONE_DIGITS = 6


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", str(value))
    text = " ".join(text.split())
    return text or None


def normalize_email(value: object) -> str | None:
    """Case-fold and trim an address; Gmail addresses also drop dots and ``+tags``."""

    text = _text(value)
    if text is None or "@" not in text:
        return None
    text = text.casefold()
    local, _, domain = text.rpartition("@")
    if not local or not domain:
        return None
    if domain in _GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    return f"{local}@{domain}"


def normalize_phone(value: object) -> str | None:
    text = _text(value)
    if text is None:
        return None
    digits = _NON_DIGITS.sub("", text)
    if len(digits) < _MIN_PHONE_DIGITS:
        return None
    return digits


def normalize_name(value: object) -> str | None:
    text = _text(value)
    if text is None:
        return None
    text = text.casefold()
    text = "".join(ch for ch in text if not unicodedata.category(ch).startswith("P"))
    return " ".join(text.split()) or None


def normalize_text(value: object) -> str | None:
    text = _text(value)
    return text.casefold() if text is not None else None


def normalize_amount(value: object) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "").lstrip("$")
    if not text:
        return None
    try:
        amount = Decimal(text)
        if not amount.is_finite():
            return None
        return f"{amount.quantize(Decimal('0.01'))}"
    except InvalidOperation:
        return None


def parse_timestamp(value: object) -> datetime | None:
    """Parse ISO-8601 strings, datetimes, dates or epoch seconds into UTC datetimes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    text = _text(value)
    if text is None:
        return None
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def normalize_date(value: object) -> str | None:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed is not None else None
