"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from attributor.adapters.cache import InMemoryCache, RedisCacheInvalidator
from attributor.adapters.http_source import HttpSourceAdapter
from attributor.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyAttributionUnitOfWork,
    is_started,
    startup,
)
from attributor.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_invalidation_config,
    get_scoring_config,
    get_source_config,
    get_sync_config,
)
from attributor.domain.attribution import AttributionCalculator, credit_model_for
from attributor.domain.confidence import ConfidenceScorer
from attributor.domain.identity import IdentityResolver, matcher_for
from attributor.domain.model import MatchConfidence, Source, TouchpointType
from attributor.domain.pipeline import IngestionPipeline
from attributor.domain.reporting import ReportingService
from attributor.domain.sync import SyncManager, SyncOptions
from attributor.domain.touchpoints import TouchpointClassifier

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterable, Mapping

    from attributor.config import InvalidationConfig, ScoringConfig, SyncConfig
    from attributor.domain.ports import AttributionUnitOfWork, CacheInvalidator, SourceAdapter
    from attributor.domain.sync import SyncAllResult, SyncResult

UnitOfWorkFactory = Callable[[], "AttributionUnitOfWork"]

DASHBOARD_KEY = "summary"

log = getLogger(__name__)


def default_unit_of_work_factory() -> UnitOfWorkFactory:
    """Start the SQL adapter on first use and return its unit-of-work factory."""

    if not is_started():
        startup()
    return SqlAlchemyAttributionUnitOfWork


def build_scorer(scoring: ScoringConfig | None = None) -> ConfidenceScorer:
    scoring = scoring or get_scoring_config()
    try:
        weights = {
            MatchConfidence(level): weight for level, weight in scoring.confidence_weights.items()
        }
    except ValueError as exc:
        raise ConfigurationError(f"Unknown confidence level in weights: {exc}") from exc
    return ConfidenceScorer(weights=weights, consistency_threshold=scoring.consistency_threshold)


def build_pipeline(scoring: ScoringConfig | None = None) -> IngestionPipeline:
    """Assemble resolver, scorer, classifier and calculator from scoring settings."""

    scoring = scoring or get_scoring_config()
    try:
        fallback = TouchpointType(scoring.fallback_touchpoint_type)
        name_matcher = matcher_for(scoring.name_matcher)
        model = credit_model_for(
            scoring.credit_model, half_life_days=scoring.time_decay_half_life_days
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    return IngestionPipeline(
        resolver=IdentityResolver(name_matcher=name_matcher),
        scorer=build_scorer(scoring),
        classifier=TouchpointClassifier(fallback=fallback),
        calculator=AttributionCalculator(model=model, won_statuses=scoring.won_statuses),
    )


def build_cache(config: InvalidationConfig | None = None) -> CacheInvalidator:
    """Redis when ``REDIS_URL`` is set, otherwise a process-local cache."""

    config = config or get_invalidation_config()
    if config.redis_url is not None:
        log.info("Using Redis cache invalidation")
        return RedisCacheInvalidator.from_config(config)
    return InMemoryCache()


def build_source_adapters(sources: Iterable[Source] | None = None) -> dict[Source, SourceAdapter]:
    """HTTP adapters for ``sources``, or for every source with a configured URL.

    Explicitly requested sources must be configured; when none are requested,
    unconfigured sources are skipped.
    """

    adapters: dict[Source, SourceAdapter] = {}
    if sources is not None:
        for source in sources:
            adapters[source] = HttpSourceAdapter(get_source_config(str(source)))
        return adapters
    for source in Source:
        try:
            adapters[source] = HttpSourceAdapter(get_source_config(str(source)))
        except MissingConfigurationError:
            log.debug("No feed configured for %s", source)
    return adapters


def build_sync_manager(
    *,
    adapters: Mapping[Source, SourceAdapter] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    pipeline: IngestionPipeline | None = None,
    cache: CacheInvalidator | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncManager:
    sync_config = sync_config or get_sync_config()
    return SyncManager(
        adapters=adapters if adapters is not None else build_source_adapters(),
        unit_of_work_factory=unit_of_work_factory or default_unit_of_work_factory(),
        pipeline=pipeline or build_pipeline(),
        cache=cache if cache is not None else build_cache(),
        cache_namespace=sync_config.cache_namespace,
        max_workers=sync_config.max_workers,
    )


def build_reporting_service(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    scoring: ScoringConfig | None = None,
) -> ReportingService:
    scoring = scoring or get_scoring_config()
    return ReportingService(
        unit_of_work_factory=unit_of_work_factory or default_unit_of_work_factory(),
        scorer=build_scorer(scoring),
        accuracy_ceiling=scoring.accuracy_ceiling,
        coverage_threshold=scoring.coverage_threshold,
    )


def sync_options(
    *,
    limit: int | None = None,
    timeout_ms: int | None = None,
    cancel: threading.Event | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncOptions:
    """Options with configured defaults for anything not given explicitly."""

    sync_config = sync_config or get_sync_config()
    limit = limit if limit is not None else sync_config.limit
    if limit is not None and limit < 1:
        raise ConfigurationError(f"Sync limit must be at least 1, got {limit}")
    return SyncOptions(
        limit=limit,
        timeout_ms=timeout_ms if timeout_ms is not None else sync_config.timeout_ms,
        cancel=cancel,
    )


def sync_sources(
    sources: Iterable[Source] | None = None,
    *,
    options: SyncOptions | None = None,
    manager: SyncManager | None = None,
) -> SyncAllResult:
    """Run a fresh sync for each selected source."""

    selected = list(sources) if sources is not None else None
    effective_manager = manager or build_sync_manager(
        adapters=build_source_adapters(selected)
    )
    effective_options = options or sync_options()
    log.info(
        "Starting sync: sources=%s, limit=%s, timeout_ms=%s",
        ", ".join(str(source) for source in selected or effective_manager.adapters),
        effective_options.limit,
        effective_options.timeout_ms,
    )
    outcome = effective_manager.sync_all(selected, effective_options)
    for source, result in outcome.results.items():
        log.info(
            f"Finished {source}: status={result.status}, processed={result.processed}, "
            f"skipped={result.skipped}, total={result.processed_total}/{result.total}"
        )
    for source, failure in outcome.failures.items():
        log.error(f"Sync of {source} failed: {failure}")
    return outcome


def resume_source_sync(
    token: str,
    *,
    options: SyncOptions | None = None,
    manager: SyncManager | None = None,
) -> SyncResult:
    effective_manager = manager or build_sync_manager()
    return effective_manager.resume_sync(token, options or sync_options())


def cached_dashboard(
    service: ReportingService,
    cache: CacheInvalidator,
    *,
    namespace: str | None = None,
) -> dict[str, object]:
    """Dashboard data, memoised in a process-local cache until the next completed sync."""

    key = f"{namespace or get_sync_config().cache_namespace}:{DASHBOARD_KEY}"
    if isinstance(cache, InMemoryCache):
        cached = cache.get(key)
        if isinstance(cached, dict):
            return cached  # pyright: ignore[reportUnknownVariableType]
        dashboard = service.dashboard()
        cache.set(key, dashboard)
        return dashboard
    return service.dashboard()
