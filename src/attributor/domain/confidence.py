"""Match-confidence classification and cross-source field consistency."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from attributor.domain.fields import CONSISTENCY_FIELDS
from attributor.domain.model import MatchConfidence, MatchMethod

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from attributor.domain.model import Contact, Source

DEFAULT_WEIGHTS: dict[MatchConfidence, float] = {
    MatchConfidence.HIGH: 1.0,
    MatchConfidence.MEDIUM: 0.7,
    MatchConfidence.LOW: 0.3,
    MatchConfidence.NONE: 0.0,
}
DEFAULT_CONSISTENCY_THRESHOLD = 0.9

FIELD_IMPORTANCE: dict[str, str] = {
    "email": "critical",
    "value": "critical",
    "status": "critical",
    "name": "high",
    "pipeline": "high",
    "deal_title": "high",
    "title": "low",
}


def importance_of(field_name: str) -> str:
    return FIELD_IMPORTANCE.get(field_name, "medium")


@dataclass(frozen=True, slots=True)
class ContactScore:
    contact_id: int | None
    match_confidence: MatchConfidence
    sources: frozenset[Source]
    methods: frozenset[MatchMethod]


@dataclass(frozen=True, slots=True)
class ConfidenceReport:
    """Population histogram and its weighted index.

    ``overall_match_score`` is a confidence index, not a share of correct matches.
    """

    total: int
    counts: dict[MatchConfidence, int]
    distribution: dict[MatchConfidence, float]
    overall_match_score: float


@dataclass(frozen=True, slots=True)
class FieldConsistency:
    field: str
    score: float | None
    samples: int
    agreeing: int
    importance: str


@dataclass(frozen=True, slots=True)
class ConsistencyReport:
    multi_source_contacts: int
    fields: tuple[FieldConsistency, ...]
    inconsistent: tuple[FieldConsistency, ...]


def classify(contact: Contact) -> MatchConfidence:
    sources = contact.sources
    methods = contact.match_methods
    if len(sources) >= 2:
        if MatchMethod.EMAIL in methods:
            return MatchConfidence.HIGH
        return MatchConfidence.MEDIUM
    if len(sources) == 1:
        (source,) = sources
        if len(contact.event_kinds.get(source, ())) >= 2:
            return MatchConfidence.MEDIUM
        if MatchMethod.FUZZY_NAME in methods or contact.has_related_records:
            return MatchConfidence.LOW
    return MatchConfidence.NONE


class ConfidenceScorer:
    def __init__(
        self,
        *,
        weights: Mapping[MatchConfidence, float] | None = None,
        consistency_threshold: float = DEFAULT_CONSISTENCY_THRESHOLD,
    ) -> None:
        self.weights = dict(DEFAULT_WEIGHTS)
        if weights:
            self.weights.update(weights)
        self.consistency_threshold = consistency_threshold

    def score(self, contact: Contact) -> ContactScore:
        return ContactScore(
            contact_id=contact.id,
            match_confidence=classify(contact),
            sources=contact.sources,
            methods=frozenset(contact.match_methods),
        )

    def apply(self, contact: Contact) -> ContactScore:
        """Score ``contact`` and store the level on it."""

        result = self.score(contact)
        contact.match_confidence = result.match_confidence
        return result

    def distribution(self, contacts: Iterable[Contact]) -> dict[MatchConfidence, float]:
        return self.confidence_report(contacts).distribution

    def overall_match_score(self, distribution: Mapping[MatchConfidence, float]) -> float:
        return sum(distribution.get(level, 0.0) * weight for level, weight in self.weights.items())

    def confidence_report(self, contacts: Iterable[Contact]) -> ConfidenceReport:
        counts: Counter[MatchConfidence] = Counter(
            classify(contact) for contact in contacts if contact.is_live
        )
        total = sum(counts.values())
        distribution = {
            level: (counts[level] / total if total else 0.0) for level in MatchConfidence
        }
        return ConfidenceReport(
            total=total,
            counts={level: counts[level] for level in MatchConfidence},
            distribution=distribution,
            overall_match_score=self.overall_match_score(distribution),
        )

    def consistency_report(self, contacts: Iterable[Contact]) -> ConsistencyReport:
        multi_source = [c for c in contacts if c.is_live and len(c.sources) >= 2]
        results: list[FieldConsistency] = []
        for field_name in CONSISTENCY_FIELDS:
            samples = 0
            agreeing = 0
            for contact in multi_source:
                values = contact.field_values.get(field_name, {})
                if len(values) < 2:
                    continue
                samples += 1
                if len(set(values.values())) == 1:
                    agreeing += 1
            results.append(
                FieldConsistency(
                    field=field_name,
                    score=agreeing / samples if samples else None,
                    samples=samples,
                    agreeing=agreeing,
                    importance=importance_of(field_name),
                )
            )
        inconsistent = sorted(
            (
                item
                for item in results
                if item.score is not None and item.score < self.consistency_threshold
            ),
            key=lambda item: (item.score, item.field),
        )
        return ConsistencyReport(
            multi_source_contacts=len(multi_source),
            fields=tuple(results),
            inconsistent=tuple(inconsistent),
        )
