"""Attribution: first/last touch, credit distribution and conversion."""

from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from attributor.domain.clock import utcnow
from attributor.domain.model import AttributionRecord, Source

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping, Sequence

    from attributor.domain.clock import Clock
    from attributor.domain.model import Deal, Touchpoint
    from attributor.domain.ports import AttributionRepositories

DEFAULT_WON_STATUSES = frozenset({"won", "closed_won", "closed-won", "closed won"})


@runtime_checkable
class CreditModel(Protocol):
    """Distribute one unit of credit over a chronologically sorted timeline."""

    name: str

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]: ...


def _normalized(weights: Mapping[Source, float]) -> dict[Source, float]:
    total = sum(weights.values())
    if total <= 0:
        return {}
    return {source: weight / total for source, weight in sorted(weights.items())}


@dataclass(frozen=True, slots=True)
class EvenSourceCredit:
    """Equal share for every distinct source with at least one touchpoint."""

    name: str = "even"

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]:
        sources = {touchpoint.source for touchpoint in touchpoints}
        return _normalized(dict.fromkeys(sources, 1.0))


@dataclass(frozen=True, slots=True)
class FirstTouchCredit:
    name: str = "first_touch"

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]:
        return {touchpoints[0].source: 1.0} if touchpoints else {}


@dataclass(frozen=True, slots=True)
class LastTouchCredit:
    name: str = "last_touch"

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]:
        return {touchpoints[-1].source: 1.0} if touchpoints else {}


@dataclass(frozen=True, slots=True)
class PositionBasedCredit:
    """U-shaped: first and last touches get fixed shares, the middle splits the rest."""

    first_share: float = 0.4
    last_share: float = 0.4
    name: str = "position"

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]:
        count = len(touchpoints)
        if count == 0:
            return {}
        weights: Counter[Source] = Counter()
        if count == 1:
            weights[touchpoints[0].source] += 1.0
        elif count == 2:  # noqa: PLR2004
            weights[touchpoints[0].source] += 0.5
            weights[touchpoints[1].source] += 0.5
        else:
            middle_share = (1.0 - self.first_share - self.last_share) / (count - 2)
            weights[touchpoints[0].source] += self.first_share
            weights[touchpoints[-1].source] += self.last_share
            for touchpoint in touchpoints[1:-1]:
                weights[touchpoint.source] += middle_share
        return _normalized(weights)


@dataclass(frozen=True, slots=True)
class TimeDecayCredit:
    """Touches closer to the latest one weigh more; weight halves every half-life."""

    half_life_days: float = 7.0
    name: str = "time_decay"

    def distribute(self, touchpoints: Sequence[Touchpoint]) -> dict[Source, float]:
        if not touchpoints:
            return {}
        latest = touchpoints[-1].occurred_at
        weights: Counter[Source] = Counter()
        for touchpoint in touchpoints:
            age_days = (latest - touchpoint.occurred_at).total_seconds() / 86400
            weights[touchpoint.source] += 0.5 ** (age_days / self.half_life_days)
        return _normalized(weights)


def credit_model_for(name: str, *, half_life_days: float = 7.0) -> CreditModel:
    match name:
        case "even":
            return EvenSourceCredit()
        case "first_touch":
            return FirstTouchCredit()
        case "last_touch":
            return LastTouchCredit()
        case "position":
            return PositionBasedCredit()
        case "time_decay":
            return TimeDecayCredit(half_life_days=half_life_days)
        case _:
            raise ValueError(f"Unknown credit model: {name}")


class AttributionCalculator:
    def __init__(
        self,
        *,
        model: CreditModel | None = None,
        won_statuses: Collection[str] = DEFAULT_WON_STATUSES,
        clock: Clock = utcnow,
    ) -> None:
        self.model = model or EvenSourceCredit()
        self.won_statuses = frozenset(status.casefold() for status in won_statuses)
        self._clock = clock

    def compute(
        self,
        contact_id: int,
        touchpoints: Iterable[Touchpoint],
        deals: Iterable[Deal],
    ) -> AttributionRecord:
        timeline = sorted(touchpoints, key=lambda tp: tp.sort_key)
        first = timeline[0] if timeline else None
        last = timeline[-1] if timeline else None

        won = [deal for deal in deals if deal.is_won(self.won_statuses)]
        days: int | None = None
        closes = [deal.closed_at for deal in won if deal.closed_at is not None]
        if first is not None and closes:
            days = (min(closes).date() - first.occurred_at.date()).days

        return AttributionRecord(
            contact_id=contact_id,
            first_touch_id=first.id if first is not None else None,
            last_touch_id=last.id if last is not None else None,
            credit_distribution=self.model.distribute(timeline),
            converted=bool(won),
            days_to_conversion=days,
            model=self.model.name,
            computed_at=self._clock(),
        )

    def recompute(
        self,
        contact_id: int,
        repositories: AttributionRepositories,
    ) -> AttributionRecord | None:
        """Rebuild the record for a live contact, or drop it for a retired one."""

        contact = repositories.contacts.get(contact_id)
        if contact is None or not contact.is_live:
            repositories.attributions.delete(contact_id)
            return None
        record = self.compute(
            contact_id,
            repositories.touchpoints.for_contact(contact_id),
            repositories.deals.for_contact(contact_id),
        )
        repositories.attributions.save(record)
        return record


@dataclass(frozen=True, slots=True)
class ConversionSummary:
    contacts: int
    converted: int
    conversion_rate: float
    mean_days_to_conversion: float | None
    median_days_to_conversion: float | None
    source_credit: dict[Source, float]
    first_touch_sources: dict[Source, int]


def conversion_summary(
    records: Iterable[AttributionRecord],
    first_touch_sources: Mapping[int, Source] | None = None,
) -> ConversionSummary:
    """Aggregate attribution records.

    ``first_touch_sources`` maps contact ids to the source of their first touch.
    """

    records = list(records)
    converted = [record for record in records if record.converted]
    days = [r.days_to_conversion for r in converted if r.days_to_conversion is not None]

    credit: Counter[Source] = Counter()
    for record in converted:
        for source, share in record.credit_distribution.items():
            credit[Source(source)] += share

    first_sources: Counter[Source] = Counter()
    for record in records:
        if first_touch_sources and record.contact_id in first_touch_sources:
            first_sources[first_touch_sources[record.contact_id]] += 1

    return ConversionSummary(
        contacts=len(records),
        converted=len(converted),
        conversion_rate=len(converted) / len(records) if records else 0.0,
        mean_days_to_conversion=statistics.fmean(days) if days else None,
        median_days_to_conversion=float(statistics.median(days)) if days else None,
        source_credit=_normalized(credit),
        first_touch_sources=dict(sorted(first_sources.items())),
    )
