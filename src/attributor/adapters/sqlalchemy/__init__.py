"""SQLAlchemy adapter package for attributor."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAttributionRepository,
    SqlAlchemyCheckpointRepository,
    SqlAlchemyContactRepository,
    SqlAlchemyDealRepository,
    SqlAlchemyRawEventLog,
    SqlAlchemyTouchpointRepository,
)
from .unit_of_work import (
    SqlAlchemyAttributionUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAttributionRepository",
    "SqlAlchemyAttributionUnitOfWork",
    "SqlAlchemyCheckpointRepository",
    "SqlAlchemyContactRepository",
    "SqlAlchemyDealRepository",
    "SqlAlchemyRawEventLog",
    "SqlAlchemyTouchpointRepository",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
