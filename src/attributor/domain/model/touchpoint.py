"""Classified, sequenced interactions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from attributor.domain.model.enums import Source, TouchpointFamily, TouchpointType


@dataclass(eq=False, kw_only=True)
class Touchpoint:
    """One interaction owned by a contact; unique per ``(source, external_id)``."""

    id: int | None = None
    contact_id: int
    source: Source
    external_id: str
    type: TouchpointType
    family: TouchpointFamily
    occurred_at: datetime
    sequence_number: int = 1
    title: str | None = None

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        return (self.occurred_at, str(self.source), self.external_id)
