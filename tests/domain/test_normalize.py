from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from attributor.domain.normalize import (
    normalize_amount,
    normalize_date,
    normalize_email,
    normalize_name,
    normalize_phone,
    parse_timestamp,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("A@X.com ", "a@x.com"),
        ("  Jane.Doe@Example.ORG", "jane.doe@example.org"),
        ("j.a.n.e+crm@googlemail.com", "jane@gmail.com"),
        ("Jane.Doe+news@Gmail.com", "janedoe@gmail.com"),
        ("not-an-email", None),
        ("@x.com", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_email(raw: object, expected: str | None) -> None:
    assert normalize_email(raw) == expected


def test_normalize_email_keeps_dots_outside_gmail() -> None:
    assert normalize_email("first.last@corp.example") == "first.last@corp.example"


def test_normalize_phone_keeps_digits_only() -> None:
    assert normalize_phone("+1 (555) 010-2030") == "15550102030"
    assert normalize_phone("12-34") is None
    assert normalize_phone(None) is None


def test_normalize_name_strips_punctuation_and_case() -> None:
    assert normalize_name("  O'Brien,   JANE ") == "obrien jane"
    assert normalize_name("...") is None


def test_normalize_amount_quantizes() -> None:
    assert normalize_amount("$1,200.5") == "1200.50"
    assert normalize_amount(99) == "99.00"
    assert normalize_amount("n/a") is None
    assert normalize_amount(True) is None


@pytest.mark.parametrize("raw", ["1e30", "Infinity", "-inf", "NaN", float("inf")])
def test_normalize_amount_drops_values_it_cannot_quantize(raw: object) -> None:
    assert normalize_amount(raw) is None


def test_parse_timestamp_variants() -> None:
    expected = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
    assert parse_timestamp("2025-03-01T09:00:00Z") == expected
    assert parse_timestamp("2025-03-01T10:00:00+01:00") == expected
    assert parse_timestamp(datetime(2025, 3, 1, 9, 0)) == expected  # noqa: DTZ001
    assert parse_timestamp(expected.timestamp()) == expected
    assert parse_timestamp(date(2025, 3, 1)) == datetime(2025, 3, 1, tzinfo=UTC)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(True) is None


@pytest.mark.parametrize("raw", [1e20, -1e20, float("nan"), float("inf")])
def test_parse_timestamp_drops_out_of_range_epochs(raw: float) -> None:
    assert parse_timestamp(raw) is None


def test_normalize_date_uses_utc_day() -> None:
    late_evening = datetime(2025, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert normalize_date(late_evening) == "2025-03-02"
