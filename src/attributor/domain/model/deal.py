"""Deals drive conversion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime

    from attributor.domain.model.enums import Source


@dataclass(eq=False, kw_only=True)
class Deal:
    id: int | None = None
    contact_id: int
    source: Source
    external_id: str
    title: str | None = None
    status: str | None = None
    value: float | None = None
    pipeline: str | None = None
    closed_at: datetime | None = None
    currency: str | None = None
    stage: str | None = None
    owner: str | None = None

    def is_won(self, won_statuses: Collection[str]) -> bool:
        if self.status is None:
            return False
        return self.status.strip().casefold() in won_statuses
