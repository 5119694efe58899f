"""SQLAlchemy unit of work shared by ingestion, sync and reporting.

The adapter keeps one engine per process. ``startup()`` binds it, migrates the schema
and installs the mappers; every unit of work then opens its own session, so sync
workers on different threads never share one.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from attributor.adapters.sqlalchemy.mappings import start_mappers
from attributor.adapters.sqlalchemy.migrations import upgrade_head
from attributor.adapters.sqlalchemy.repositories import (
    SqlAlchemyAttributionRepository,
    SqlAlchemyCheckpointRepository,
    SqlAlchemyContactRepository,
    SqlAlchemyDealRepository,
    SqlAlchemyRawEventLog,
    SqlAlchemyTouchpointRepository,
)
from attributor.config.storage import DatabaseConfig, get_database_config
from attributor.domain.ports.unit_of_work import AttributionRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the adapter is used before ``startup()`` or configured twice."""


_lock = threading.Lock()
_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the process-wide engine and bring the schema to head."""

    global _engine, _sessions  # noqa: PLW0603
    with _lock:
        if _engine is not None and not force:
            raise StartupError(
                "SQLAlchemy adapter already started; pass force=True to rebind it."
            )
        if engine is None:
            database = (
                DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
            )
            engine = create_engine(database.uri, future=True, **database.engine_options())
        start_mappers()
        upgrade_head(engine=engine)
        _engine = engine
        _sessions = sessionmaker(bind=engine, expire_on_commit=False)
    log.info("Contact store ready at %s", engine.url.render_as_string())


def configured_engine() -> Engine | None:
    return _engine


def is_started() -> bool:
    return _engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it; ``startup()`` may be called again."""

    global _engine, _sessions  # noqa: PLW0603
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _sessions = None


class SqlAlchemyAttributionUnitOfWork:
    """One session and one transaction; leaving the block without ``commit()`` rolls back."""

    def __init__(self) -> None:
        if _sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not started; call "
                "attributor.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        self._session_factory = _sessions
        self._session: Session | None = None
        self._repositories: AttributionRepositories | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> AttributionRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def __enter__(self) -> SqlAlchemyAttributionUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._session_factory()
        self._session = session
        self._repositories = AttributionRepositories(
            contacts=SqlAlchemyContactRepository(session),
            touchpoints=SqlAlchemyTouchpointRepository(session),
            deals=SqlAlchemyDealRepository(session),
            attributions=SqlAlchemyAttributionRepository(session),
            checkpoints=SqlAlchemyCheckpointRepository(session),
            raw_events=SqlAlchemyRawEventLog(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from attributor.domain.ports.unit_of_work import AttributionUnitOfWork

    _uow_check: AttributionUnitOfWork = SqlAlchemyAttributionUnitOfWork()
