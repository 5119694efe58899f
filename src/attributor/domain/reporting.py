"""Read-only projections over the resolved contact graph."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from attributor.domain.attribution import conversion_summary
from attributor.domain.completeness import (
    DEFAULT_ACCURACY_CEILING,
    DEFAULT_COVERAGE_THRESHOLD,
    audit,
    gate_accuracy,
)
from attributor.domain.confidence import ConfidenceScorer
from attributor.domain.identity import follow
from attributor.domain.model import SyncCheckpoint

if TYPE_CHECKING:
    from collections.abc import Callable

    from attributor.domain.attribution import ConversionSummary
    from attributor.domain.completeness import CompletenessReport, EntityCoverage
    from attributor.domain.confidence import ConfidenceReport, ConsistencyReport
    from attributor.domain.model import AttributionRecord, Source
    from attributor.domain.ports import AttributionUnitOfWork


@dataclass(frozen=True, slots=True)
class AccuracySummary:
    overall_match_score: float
    reported_accuracy: float
    overall_coverage: float
    gated: bool


class ReportingService:
    """Each method opens its own unit of work and never commits."""

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], AttributionUnitOfWork],
        scorer: ConfidenceScorer | None = None,
        accuracy_ceiling: float = DEFAULT_ACCURACY_CEILING,
        coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
    ) -> None:
        self.unit_of_work_factory = unit_of_work_factory
        self.scorer = scorer or ConfidenceScorer()
        self.accuracy_ceiling = accuracy_ceiling
        self.coverage_threshold = coverage_threshold

    def attribution_for(self, contact_id: int) -> AttributionRecord | None:
        with self.unit_of_work_factory() as uow:
            contact = follow(uow.repositories.contacts, contact_id)
            if contact is None or contact.id is None:
                return None
            return uow.repositories.attributions.get(contact.id)

    def confidence_report(self) -> ConfidenceReport:
        with self.unit_of_work_factory() as uow:
            return self.scorer.confidence_report(uow.repositories.contacts.live())

    def field_consistency_report(self) -> ConsistencyReport:
        with self.unit_of_work_factory() as uow:
            return self.scorer.consistency_report(uow.repositories.contacts.live())

    def completeness_report(self) -> CompletenessReport:
        with self.unit_of_work_factory() as uow:
            return audit(uow.repositories.contacts.live(), uow.repositories.deals.all())

    def conversion_summary(self) -> ConversionSummary:
        with self.unit_of_work_factory() as uow:
            records = list(uow.repositories.attributions.all())
            first_sources: dict[int, Source] = {}
            for record in records:
                if record.first_touch_id is None:
                    continue
                touchpoint = uow.repositories.touchpoints.get(record.first_touch_id)
                if touchpoint is not None:
                    first_sources[record.contact_id] = touchpoint.source
            return conversion_summary(records, first_sources)

    def accuracy(self) -> AccuracySummary:
        confidence = self.confidence_report()
        completeness = self.completeness_report()
        reported = gate_accuracy(
            confidence.overall_match_score,
            completeness,
            ceiling=self.accuracy_ceiling,
            coverage_threshold=self.coverage_threshold,
        )
        return AccuracySummary(
            overall_match_score=confidence.overall_match_score,
            reported_accuracy=reported,
            overall_coverage=completeness.overall_coverage,
            gated=reported < confidence.overall_match_score,
        )

    def sync_status(self, source: Source) -> SyncCheckpoint:
        with self.unit_of_work_factory() as uow:
            checkpoint = uow.repositories.checkpoints.get(source)
        return checkpoint if checkpoint is not None else SyncCheckpoint(source=source)

    def dashboard(self) -> dict[str, object]:
        """All reports as plain JSON-ready data."""

        completeness = self.completeness_report()
        return {
            "confidence": asdict(self.confidence_report()),
            "consistency": asdict(self.field_consistency_report()),
            "completeness": {
                "overall_coverage": completeness.overall_coverage,
                "contacts": _coverage_dict(completeness.contacts),
                "deals": _coverage_dict(completeness.deals),
            },
            "conversion": asdict(self.conversion_summary()),
            "accuracy": asdict(self.accuracy()),
        }


def _coverage_dict(coverage: EntityCoverage) -> dict[str, object]:
    return {
        "total": coverage.total,
        "required_rate": coverage.required_rate,
        "enhanced_rate": coverage.enhanced_rate,
        "weighted_rate": coverage.weighted_rate,
        "fields": {
            item.field: {"present": item.present, "rate": item.rate, "required": item.required}
            for item in coverage.fields
        },
    }
