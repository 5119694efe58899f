"""Pydantic models describing the paged JSON feed payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _identifier(value: object) -> object:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class FeedBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FeedRecord(FeedBaseModel):
    external_id: str | None = Field(
        default=None, validation_alias=AliasChoices("external_id", "id")
    )
    kind: str = Field(validation_alias=AliasChoices("kind", "type", "record_type"))
    observed_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("observed_at", "updated_at")
    )
    payload: dict[str, object] = Field(
        default_factory=dict[str, object], validation_alias=AliasChoices("payload", "data")
    )

    normalize_id = field_validator("external_id", mode="before")(_identifier)


class FeedPage(FeedBaseModel):
    records: list[FeedRecord] = Field(default_factory=list[FeedRecord])
    next_cursor: str | None = None
    total: int | None = None

    normalize_cursor = field_validator("next_cursor", mode="before")(_identifier)
