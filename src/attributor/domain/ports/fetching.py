"""Ports for fetching raw records from external sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from attributor.domain.model import RawEvent, Source


@dataclass(frozen=True, slots=True)
class Page:
    """One page of records; ``next_cursor is None`` signals exhaustion."""

    records: Sequence[RawEvent] = field(default_factory=tuple["RawEvent", ...])
    next_cursor: str | None = None
    total: int | None = None


@runtime_checkable
class SourceAdapter(Protocol):
    """Paged, finite reader over one source's records."""

    @property
    def source(self) -> Source: ...

    def next_page(self, cursor: str | None) -> Page: ...


__all__ = ["Page", "SourceAdapter"]
