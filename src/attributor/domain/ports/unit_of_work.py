"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from attributor.domain.ports.persistence import (
        AttributionRepository,
        CheckpointRepository,
        ContactRepository,
        DealRepository,
        RawEventLog,
        TouchpointRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...  # the repo list itself should be immutable

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class AttributionRepositories(RepositoryCollection):
    """Repositories touched while ingesting records and reporting on them."""

    contacts: ContactRepository
    touchpoints: TouchpointRepository
    deals: DealRepository
    attributions: AttributionRepository
    checkpoints: CheckpointRepository
    raw_events: RawEventLog


type AttributionUnitOfWork = UnitOfWork[AttributionRepositories]
