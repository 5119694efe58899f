from __future__ import annotations

import pytest

from attributor.domain.identity import (
    BigramNameMatcher,
    SubstringNameMatcher,
    TokenSetNameMatcher,
    matcher_for,
)
from attributor.domain.identity.matchers import bigram_similarity


def test_substring_matcher_scores_containment_below_exact() -> None:
    matcher = SubstringNameMatcher()

    assert matcher.score("jane doe", "jane doe") == 1.0
    assert matcher.score("jane", "jane doe") == pytest.approx(0.9)
    assert matcher.score("john", "jane doe") == 0.0
    assert matcher.score("", "jane") == 0.0


def test_token_set_matcher_ignores_order_but_not_missing_tokens() -> None:
    matcher = TokenSetNameMatcher()

    assert matcher.score("doe jane", "jane doe") == 1.0
    assert matcher.score("jane", "jane doe") == 0.0


def test_bigram_matcher_tolerates_typos_above_threshold() -> None:
    matcher = BigramNameMatcher(threshold=0.5)

    assert matcher.score("jonathan smith", "jonathon smith") >= 0.5
    assert matcher.score("jonathan smith", "maria garcia") == 0.0


def test_bigram_similarity_bounds() -> None:
    assert bigram_similarity("abc", "abc") == 1.0
    assert bigram_similarity("ab", "cd") == 0.0
    assert bigram_similarity("a", "b") == 0.0


def test_matcher_for_resolves_names() -> None:
    assert matcher_for("token_set").name == "token_set"
    with pytest.raises(ValueError, match="Unknown name matcher"):
        matcher_for("soundex")
