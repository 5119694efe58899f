"""Field coverage statistics used to gate how much accuracy may be claimed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from attributor.domain.model import REQUIRED_CONTACT_FIELDS

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from attributor.domain.model import Contact, Deal

ENHANCED_CONTACT_FIELDS: tuple[str, ...] = ("lead_source", "lead_status", "owner")
REQUIRED_DEAL_FIELDS: tuple[str, ...] = ("deal_title", "value", "status", "close_date", "pipeline")
ENHANCED_DEAL_FIELDS: tuple[str, ...] = ("currency", "stage", "owner")

REQUIRED_WEIGHT = 0.7
ENHANCED_WEIGHT = 0.3
DEFAULT_ACCURACY_CEILING = 0.9
DEFAULT_COVERAGE_THRESHOLD = 0.8

_DEAL_ATTRIBUTES: dict[str, Callable[[Deal], object]] = {
    "deal_title": lambda deal: deal.title,
    "value": lambda deal: deal.value,
    "status": lambda deal: deal.status,
    "close_date": lambda deal: deal.closed_at,
    "pipeline": lambda deal: deal.pipeline,
    "currency": lambda deal: deal.currency,
    "stage": lambda deal: deal.stage,
    "owner": lambda deal: deal.owner,
}


@dataclass(frozen=True, slots=True)
class FieldCoverage:
    field: str
    present: int
    total: int
    required: bool

    @property
    def rate(self) -> float:
        return self.present / self.total if self.total else 0.0


@dataclass(frozen=True, slots=True)
class EntityCoverage:
    entity: str
    total: int
    fields: tuple[FieldCoverage, ...]

    def _mean(self, *, required: bool) -> float:
        rates = [item.rate for item in self.fields if item.required is required]
        return sum(rates) / len(rates) if rates else 0.0

    @property
    def required_rate(self) -> float:
        return self._mean(required=True)

    @property
    def enhanced_rate(self) -> float:
        return self._mean(required=False)

    @property
    def weighted_rate(self) -> float:
        return REQUIRED_WEIGHT * self.required_rate + ENHANCED_WEIGHT * self.enhanced_rate


@dataclass(frozen=True, slots=True)
class CompletenessReport:
    contacts: EntityCoverage
    deals: EntityCoverage

    @property
    def overall_coverage(self) -> float:
        populated = [entity for entity in (self.contacts, self.deals) if entity.total]
        if not populated:
            return 0.0
        return sum(entity.weighted_rate for entity in populated) / len(populated)


def _present(value: object) -> bool:
    if value is None:
        return False
    return not (isinstance(value, str) and not value.strip())


def _contact_has(contact: Contact, field_name: str) -> bool:
    return field_name in contact.known_fields()


def _coverage[T](
    entity: str,
    items: list[T],
    required: tuple[str, ...],
    enhanced: tuple[str, ...],
    has: Callable[[T, str], bool],
) -> EntityCoverage:
    fields = tuple(
        FieldCoverage(
            field=name,
            present=sum(1 for item in items if has(item, name)),
            total=len(items),
            required=is_required,
        )
        for names, is_required in ((required, True), (enhanced, False))
        for name in names
    )
    return EntityCoverage(entity=entity, total=len(items), fields=fields)


def audit(contacts: Iterable[Contact], deals: Iterable[Deal]) -> CompletenessReport:
    live = [contact for contact in contacts if contact.is_live]
    return CompletenessReport(
        contacts=_coverage(
            "contact",
            live,
            REQUIRED_CONTACT_FIELDS,
            ENHANCED_CONTACT_FIELDS,
            _contact_has,
        ),
        deals=_coverage(
            "deal",
            list(deals),
            REQUIRED_DEAL_FIELDS,
            ENHANCED_DEAL_FIELDS,
            lambda deal, name: _present(_DEAL_ATTRIBUTES[name](deal)),
        ),
    )


def gate_accuracy(
    score: float,
    report: CompletenessReport,
    *,
    ceiling: float = DEFAULT_ACCURACY_CEILING,
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> float:
    """Cap ``score`` at ``ceiling`` until overall coverage reaches the threshold."""

    if report.overall_coverage >= coverage_threshold:
        return score
    return min(score, ceiling)
