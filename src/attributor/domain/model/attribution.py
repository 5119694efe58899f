"""Derived attribution records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from attributor.domain.model.enums import Source


@dataclass(eq=False, kw_only=True)
class AttributionRecord:
    """Recomputable cache of a contact's attribution; never edited by hand."""

    contact_id: int
    first_touch_id: int | None = None
    last_touch_id: int | None = None
    credit_distribution: dict[Source, float] = field(default_factory=dict["Source", float])
    converted: bool = False
    days_to_conversion: int | None = None
    model: str = "even"
    computed_at: datetime | None = None
