"""Resumable, checkpointed syncs of one source through the ingestion pipeline.

A run reads pages from the source adapter and commits each record together with the
checkpoint position that follows it, so the persisted position always sits on a record
boundary. Runs stop when the adapter is exhausted, when ``limit`` records have been
committed, when ``timeout_ms`` has elapsed, or when the cancel event is set; the last
three pause the checkpoint and hand out a resume token.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple
from uuid import uuid4

from attributor.domain.clock import utcnow
from attributor.domain.errors import (
    AdapterFailure,
    AttributorError,
    InvalidRecord,
    InvalidResumeToken,
)
from attributor.domain.identity import identity_keys, identity_locks, validate_event
from attributor.domain.model import Source, SyncCheckpoint, SyncStatus
from attributor.domain.pipeline import IngestionPipeline

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Iterable, Mapping

    from attributor.domain.clock import Clock
    from attributor.domain.identity import KeyedLocks
    from attributor.domain.ports import (
        AttributionRepositories,
        AttributionUnitOfWork,
        CacheInvalidator,
        Page,
        SourceAdapter,
    )

log = logging.getLogger(__name__)

DEFAULT_CACHE_NAMESPACE = "dashboard"


@dataclass(frozen=True, slots=True)
class SyncOptions:
    limit: int | None = None
    timeout_ms: int | None = None
    cancel: threading.Event | None = None


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of one call; ``processed`` counts records committed by this call only."""

    source: Source
    processed: int
    processed_total: int
    skipped: int
    total: int | None
    resume_token: str | None
    completed: bool
    status: SyncStatus


@dataclass(frozen=True, slots=True)
class ResumeToken:
    source: Source
    token_id: str
    cursor: str | None
    page_offset: int
    processed_total: int

    def encode(self) -> str:
        body = json.dumps(
            {
                "source": str(self.source),
                "token_id": self.token_id,
                "cursor": self.cursor,
                "page_offset": self.page_offset,
                "processed_total": self.processed_total,
            },
            separators=(",", ":"),
            sort_keys=True,
        )
        return base64.urlsafe_b64encode(body.encode("utf-8")).rstrip(b"=").decode("ascii")

    @classmethod
    def decode(cls, value: str) -> ResumeToken:
        padded = value.strip() + "=" * (-len(value.strip()) % 4)
        try:
            raw = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidResumeToken("Resume token cannot be decoded") from exc
        if not isinstance(raw, dict):
            raise InvalidResumeToken("Resume token has an unexpected shape")
        try:
            source = Source(raw["source"])
            token_id = raw["token_id"]
            cursor = raw["cursor"]
            page_offset = raw["page_offset"]
            processed_total = raw["processed_total"]
        except (KeyError, ValueError) as exc:
            raise InvalidResumeToken(
                "Resume token is incomplete or names an unknown source"
            ) from exc
        if (
            not isinstance(token_id, str)
            or not (cursor is None or isinstance(cursor, str))
            or not isinstance(page_offset, int)
            or not isinstance(processed_total, int)
            or page_offset < 0
            or processed_total < 0
        ):
            raise InvalidResumeToken("Resume token fields have unexpected types")
        return cls(
            source=source,
            token_id=token_id,
            cursor=cursor,
            page_offset=page_offset,
            processed_total=processed_total,
        )

    @classmethod
    def for_checkpoint(cls, checkpoint: SyncCheckpoint) -> ResumeToken | None:
        if checkpoint.resume_token_id is None:
            return None
        return cls(
            source=checkpoint.source,
            token_id=checkpoint.resume_token_id,
            cursor=checkpoint.cursor,
            page_offset=checkpoint.page_offset,
            processed_total=checkpoint.processed_count,
        )


class _Position(NamedTuple):
    cursor: str | None
    page_offset: int
    processed_total: int


@dataclass(slots=True)
class _Run:
    source: Source
    position: _Position
    processed: int = 0
    skipped: int = 0
    total: int | None = None
    started: bool = False
    deadline: float | None = None

    def after(self, page: Page, index: int, *, committed: bool) -> _Position:
        """Position just past ``page.records[index]``."""

        processed_total = self.position.processed_total + (1 if committed else 0)
        if index + 1 >= len(page.records) and page.next_cursor is not None:
            return _Position(page.next_cursor, 0, processed_total)
        return _Position(self.position.cursor, index + 1, processed_total)

    def token(self) -> ResumeToken:
        return ResumeToken(
            source=self.source,
            token_id=uuid4().hex,
            cursor=self.position.cursor,
            page_offset=self.position.page_offset,
            processed_total=self.position.processed_total,
        )


@dataclass(slots=True)
class SyncAllResult:
    results: dict[Source, SyncResult] = field(default_factory=dict[Source, SyncResult])
    failures: dict[Source, Exception] = field(default_factory=dict[Source, Exception])


class SyncManager:
    def __init__(
        self,
        *,
        adapters: Mapping[Source, SourceAdapter],
        unit_of_work_factory: Callable[[], AttributionUnitOfWork],
        pipeline: IngestionPipeline | None = None,
        cache: CacheInvalidator | None = None,
        cache_namespace: str = DEFAULT_CACHE_NAMESPACE,
        locks: KeyedLocks | None = None,
        clock: Clock = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        max_workers: int = 3,
    ) -> None:
        self.adapters = dict(adapters)
        self.unit_of_work_factory = unit_of_work_factory
        self.pipeline = pipeline or IngestionPipeline()
        self.cache = cache
        self.cache_namespace = cache_namespace
        self.max_workers = max_workers
        self._locks = locks or identity_locks()
        self._clock = clock
        self._monotonic = monotonic

    def start_sync(self, source: Source, options: SyncOptions | None = None) -> SyncResult:
        adapter = self._adapter(source)
        run = _Run(source=source, position=_Position(None, 0, 0))
        log.info("Starting sync of %s", source)
        return self._execute(adapter, run, options or SyncOptions())

    def resume_sync(self, token: str, options: SyncOptions | None = None) -> SyncResult:
        decoded = ResumeToken.decode(token)
        adapter = self._adapter(decoded.source)
        with self.unit_of_work_factory() as uow:
            checkpoint = uow.repositories.checkpoints.get(decoded.source)
            resumable = (
                checkpoint is not None
                and checkpoint.resume_token_id == decoded.token_id
                and checkpoint.status in (SyncStatus.PAUSED, SyncStatus.FAILED)
            )
            if not resumable:
                if checkpoint is not None:
                    checkpoint.reset()
                    uow.repositories.checkpoints.save(checkpoint)
                    uow.commit()
                log.warning("Stale resume token for %s; checkpoint reset", decoded.source)
                raise InvalidResumeToken(
                    f"Resume token for {decoded.source} is stale; restart the sync"
                )

        run = _Run(
            source=decoded.source,
            position=_Position(decoded.cursor, decoded.page_offset, decoded.processed_total),
        )
        log.info(
            "Resuming sync of %s at %d processed records", decoded.source, decoded.processed_total
        )
        return self._execute(adapter, run, options or SyncOptions(), resumed_from=token)

    def sync_status(self, source: Source) -> SyncCheckpoint:
        with self.unit_of_work_factory() as uow:
            checkpoint = uow.repositories.checkpoints.get(source)
        return checkpoint if checkpoint is not None else SyncCheckpoint(source=source)

    def sync_all(
        self,
        sources: Iterable[Source] | None = None,
        options: SyncOptions | None = None,
    ) -> SyncAllResult:
        """Run one independent sync per source on a thread pool."""

        selected = list(sources) if sources is not None else list(self.adapters)
        outcome = SyncAllResult()
        if not selected:
            return outcome
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(selected))) as pool:
            futures = {source: pool.submit(self.start_sync, source, options) for source in selected}
            for source, future in futures.items():
                try:
                    outcome.results[source] = future.result()
                except AttributorError as exc:
                    outcome.failures[source] = exc
                except Exception as exc:
                    log.exception("Sync of %s failed unexpectedly", source)
                    outcome.failures[source] = exc
        return outcome

    def _adapter(self, source: Source) -> SourceAdapter:
        try:
            return self.adapters[source]
        except KeyError as exc:
            raise InvalidResumeToken(f"No adapter configured for source {source}") from exc

    def _execute(
        self,
        adapter: SourceAdapter,
        run: _Run,
        options: SyncOptions,
        *,
        resumed_from: str | None = None,
    ) -> SyncResult:
        if options.timeout_ms is not None:
            run.deadline = self._monotonic() + options.timeout_ms / 1000
        try:
            return self._loop(adapter, run, options, resumed_from=resumed_from)
        except AdapterFailure as exc:
            exc.resume_token = self._fail(run, exc)
            raise
        except Exception as exc:
            self._fail(run, exc)
            raise

    def _loop(
        self,
        adapter: SourceAdapter,
        run: _Run,
        options: SyncOptions,
        *,
        resumed_from: str | None,
    ) -> SyncResult:
        while True:
            page = adapter.next_page(run.position.cursor)
            if page.total is not None:
                run.total = page.total
            last_index = len(page.records) - 1
            for index in range(run.position.page_offset, len(page.records)):
                if options.cancel is not None and options.cancel.is_set():
                    log.info("Sync of %s cancelled", run.source)
                    return self._stop(run, resumed_from)
                if options.limit is not None and run.processed >= options.limit:
                    return self._stop(run, resumed_from)
                committed = self._process(page, index, run)
                final = page.next_cursor is None and index == last_index
                if committed and not final and self._should_pause(run, options):
                    return self._stop(run, resumed_from)
            if page.next_cursor is None:
                return self._complete(run)
            run.position = _Position(page.next_cursor, 0, run.position.processed_total)

    def _should_pause(self, run: _Run, options: SyncOptions) -> bool:
        if options.limit is not None and run.processed >= options.limit:
            return True
        if run.deadline is not None and self._monotonic() >= run.deadline:
            log.info("Sync of %s reached its time budget", run.source)
            return True
        if options.cancel is not None and options.cancel.is_set():
            log.info("Sync of %s cancelled", run.source)
            return True
        return False

    def _process(self, page: Page, index: int, run: _Run) -> bool:
        """Ingest one record and commit it with the position that follows it."""

        event = page.records[index]
        try:
            validated = validate_event(event)
            keys = identity_keys(validated)
        except InvalidRecord as exc:
            log.warning("Skipping invalid record from %s: %s", run.source, exc)
            run.skipped += 1
            run.position = run.after(page, index, committed=False)
            return False

        position = run.after(page, index, committed=True)
        with self._locks.hold(keys), self.unit_of_work_factory() as uow:
            self.pipeline.process(event, uow.repositories, validated=validated)
            self._record(
                uow.repositories,
                run,
                position,
                SyncStatus.IN_PROGRESS,
                attempt=not run.started,
            )
            uow.commit()
        run.position = position
        run.processed += 1
        run.started = True
        return True

    def _record(
        self,
        repositories: AttributionRepositories,
        run: _Run,
        position: _Position,
        status: SyncStatus,
        *,
        attempt: bool = False,
        token_id: str | None = None,
        error: str | None = None,
    ) -> None:
        checkpoint = repositories.checkpoints.get(run.source)
        if checkpoint is None:
            checkpoint = SyncCheckpoint(source=run.source)
        if attempt:
            checkpoint.last_attempt_at = self._clock()
        checkpoint.status = status
        checkpoint.cursor = position.cursor
        checkpoint.page_offset = position.page_offset
        checkpoint.processed_count = position.processed_total
        checkpoint.total = run.total
        checkpoint.resume_token_id = token_id
        checkpoint.last_error = error
        repositories.checkpoints.save(checkpoint)

    def _stop(self, run: _Run, resumed_from: str | None) -> SyncResult:
        if not run.started:
            # Nothing committed in this call: the prior checkpoint stays as it was.
            checkpoint = self.sync_status(run.source)
            return self._result(run, checkpoint.status, resumed_from, completed=False)
        token = run.token()
        with self.unit_of_work_factory() as uow:
            self._record(
                uow.repositories, run, run.position, SyncStatus.PAUSED, token_id=token.token_id
            )
            uow.commit()
        log.info(
            "Paused sync of %s after %d records (%d total)",
            run.source,
            run.processed,
            run.position.processed_total,
        )
        return self._result(run, SyncStatus.PAUSED, token.encode(), completed=False)

    def _complete(self, run: _Run) -> SyncResult:
        with self.unit_of_work_factory() as uow:
            self._record(
                uow.repositories,
                run,
                run.position,
                SyncStatus.COMPLETED,
                attempt=not run.started,
            )
            uow.commit()
        log.info(
            "Completed sync of %s: %d processed, %d skipped",
            run.source,
            run.processed,
            run.skipped,
        )
        if self.cache is not None:
            removed = self.cache.invalidate(self.cache_namespace)
            log.debug("Invalidated %d cache entries under %r", removed, self.cache_namespace)
        return self._result(run, SyncStatus.COMPLETED, None, completed=True)

    def _fail(self, run: _Run, exc: BaseException) -> str:
        token = run.token()
        with self.unit_of_work_factory() as uow:
            self._record(
                uow.repositories,
                run,
                run.position,
                SyncStatus.FAILED,
                attempt=not run.started,
                token_id=token.token_id,
                error=str(exc) or type(exc).__name__,
            )
            uow.commit()
        log.error(  # noqa: TRY400
            "Sync of %s failed after %d records: %s", run.source, run.processed, exc
        )
        return token.encode()

    @staticmethod
    def _result(
        run: _Run,
        status: SyncStatus,
        token: str | None,
        *,
        completed: bool,
    ) -> SyncResult:
        return SyncResult(
            source=run.source,
            processed=run.processed,
            processed_total=run.position.processed_total,
            skipped=run.skipped,
            total=run.total,
            resume_token=token,
            completed=completed,
            status=status,
        )
