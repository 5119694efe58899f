"""Raw records as received from source adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from attributor.domain.model.enums import EventKind, Source


@dataclass(frozen=True, slots=True, kw_only=True)
class RawEvent:
    """Immutable source record.

    ``external_id`` and ``kind`` are kept as delivered; malformed records are rejected
    during ingestion rather than at construction so they can be counted and skipped.
    """

    source: Source
    external_id: str | None
    kind: EventKind | str
    observed_at: datetime
    payload: Mapping[str, object] = field(default_factory=dict[str, object])

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))
        if self.observed_at.tzinfo is None:
            object.__setattr__(self, "observed_at", self.observed_at.replace(tzinfo=UTC))

    @property
    def key(self) -> tuple[str, str | None, datetime]:
        return (str(self.source), self.external_id, self.observed_at)
