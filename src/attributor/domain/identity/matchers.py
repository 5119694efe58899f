"""Pluggable name-matching strategies for best-effort identity linking.

Matchers receive names already passed through ``normalize_name`` and return a score in
``[0, 1]``; ``0`` means "no match". The resolver only consults them for candidates that
share a corroborating field, and ranks candidates by score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

_CONTAINMENT_SCORE = 0.9


@runtime_checkable
class NameMatcher(Protocol):
    name: str

    def score(self, left: str, right: str) -> float: ...


def _contains(left: str, right: str) -> bool:
    return left in right or right in left


@dataclass(frozen=True, slots=True)
class SubstringNameMatcher:
    """Case-insensitive containment ("Jane" matches "Jane Doe")."""

    name: str = "substring"

    def score(self, left: str, right: str) -> float:
        if not left or not right:
            return 0.0
        if left == right:
            return 1.0
        return _CONTAINMENT_SCORE if _contains(left, right) else 0.0


@dataclass(frozen=True, slots=True)
class TokenSetNameMatcher:
    """Strict: both names must consist of the same tokens, in any order."""

    name: str = "token_set"

    def score(self, left: str, right: str) -> float:
        if not left or not right:
            return 0.0
        return 1.0 if set(left.split()) == set(right.split()) else 0.0


def _bigrams(value: str) -> set[str]:
    return {value[index : index + 2] for index in range(len(value) - 1)}


def bigram_similarity(left: str, right: str) -> float:
    """Jaccard index over character bigrams."""

    left_bigrams = _bigrams(left)
    right_bigrams = _bigrams(right)
    union = left_bigrams | right_bigrams
    if not union:
        return 0.0
    return len(left_bigrams & right_bigrams) / len(union)


@dataclass(frozen=True, slots=True)
class BigramNameMatcher:
    threshold: float = 0.7
    name: str = "bigram"

    def score(self, left: str, right: str) -> float:
        if not left or not right:
            return 0.0
        if left == right:
            return 1.0
        if _contains(left, right):
            return _CONTAINMENT_SCORE
        similarity = bigram_similarity(left, right)
        return similarity if similarity >= self.threshold else 0.0


_MATCHERS: dict[str, type[SubstringNameMatcher | TokenSetNameMatcher | BigramNameMatcher]] = {
    "substring": SubstringNameMatcher,
    "token_set": TokenSetNameMatcher,
    "bigram": BigramNameMatcher,
}


def matcher_for(name: str) -> NameMatcher:
    try:
        return _MATCHERS[name]()
    except KeyError as exc:
        raise ValueError(f"Unknown name matcher: {name}") from exc
