"""Domain-level failures raised by the ingestion core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from attributor.domain.model import Source, SourceRef


class AttributorError(RuntimeError):
    """Base class for failures scoped to a record or a sync run."""


class InvalidRecord(AttributorError):  # noqa: N818
    """A raw event is malformed; it is skipped and the sync continues."""

    def __init__(
        self,
        message: str,
        *,
        source: Source | str | None = None,
        external_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.external_id = external_id


class InvalidResumeToken(AttributorError):  # noqa: N818
    """A resume token cannot be decoded or no longer matches the checkpoint."""


class MergeConflict(AttributorError):  # noqa: N818
    """Persistence found a source id already owned by another live contact."""

    def __init__(self, ref: SourceRef, owner_id: int) -> None:
        super().__init__(f"{ref} is already owned by contact {owner_id}")
        self.ref = ref
        self.owner_id = owner_id


class AdapterFailure(AttributorError):  # noqa: N818
    """I/O failure surfaced by a source adapter.

    The sync manager attaches ``resume_token`` for the last committed boundary before
    re-raising.
    """

    def __init__(self, message: str, *, source: Source | str | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.resume_token: str | None = None
