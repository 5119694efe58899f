"""Per-source sync progress."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from attributor.domain.model.enums import SyncStatus

if TYPE_CHECKING:
    from datetime import datetime

    from attributor.domain.model.enums import Source


@dataclass(eq=False, kw_only=True)
class SyncCheckpoint:
    """Position of the last committed record for one source.

    ``cursor`` is the adapter cursor that fetched the current page and ``page_offset`` the
    number of that page's records already committed.
    """

    source: Source
    cursor: str | None = None
    page_offset: int = 0
    processed_count: int = 0
    total: int | None = None
    status: SyncStatus = SyncStatus.IDLE
    resume_token_id: str | None = None
    last_attempt_at: datetime | None = None
    last_error: str | None = None

    def reset(self) -> None:
        """Return to ``idle`` from the beginning of the feed, keeping counters."""

        self.status = SyncStatus.IDLE
        self.cursor = None
        self.page_offset = 0
        self.resume_token_id = None
