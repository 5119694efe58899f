"""Domain port definitions for adapters."""

from __future__ import annotations

from .cache import CacheInvalidator
from .fetching import Page, SourceAdapter
from .persistence import (
    AttributionRepository,
    CheckpointRepository,
    ContactRepository,
    DealRepository,
    RawEventLog,
    Repository,
    TouchpointRepository,
)
from .unit_of_work import (
    AttributionRepositories,
    AttributionUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AttributionRepositories",
    "AttributionRepository",
    "AttributionUnitOfWork",
    "CacheInvalidator",
    "CheckpointRepository",
    "ContactRepository",
    "DealRepository",
    "Page",
    "RawEventLog",
    "Repository",
    "RepositoryCollection",
    "SourceAdapter",
    "TouchpointRepository",
    "UnitOfWork",
]
