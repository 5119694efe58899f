"""Tunables for confidence scoring, attribution and completeness gating."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import env_float, optional_env_var
from .errors import ConfigurationError

DEFAULT_CONFIDENCE_WEIGHTS: dict[str, float] = {
    "high": 1.0,
    "medium": 0.7,
    "low": 0.3,
    "none": 0.0,
}
DEFAULT_WON_STATUSES = frozenset({"won", "closed_won", "closed-won", "closed won"})
CREDIT_MODELS = frozenset({"even", "first_touch", "last_touch", "position", "time_decay"})
NAME_MATCHERS = frozenset({"substring", "token_set", "bigram"})


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    confidence_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_WEIGHTS)
    )
    consistency_threshold: float = 0.9
    accuracy_ceiling: float = 0.9
    coverage_threshold: float = 0.8
    fallback_touchpoint_type: str = "call1"
    won_statuses: frozenset[str] = DEFAULT_WON_STATUSES
    credit_model: str = "even"
    name_matcher: str = "substring"
    time_decay_half_life_days: float = 7.0


def get_scoring_config() -> ScoringConfig:
    credit_model = optional_env_var("ATTRIBUTOR_CREDIT_MODEL") or "even"
    if credit_model not in CREDIT_MODELS:
        raise ConfigurationError(f"Unknown credit model: {credit_model}")
    name_matcher = optional_env_var("ATTRIBUTOR_NAME_MATCHER") or "substring"
    if name_matcher not in NAME_MATCHERS:
        raise ConfigurationError(f"Unknown name matcher: {name_matcher}")
    return ScoringConfig(
        consistency_threshold=env_float("ATTRIBUTOR_CONSISTENCY_THRESHOLD", 0.9),
        accuracy_ceiling=env_float("ATTRIBUTOR_ACCURACY_CEILING", 0.9),
        coverage_threshold=env_float("ATTRIBUTOR_COVERAGE_THRESHOLD", 0.8),
        fallback_touchpoint_type=optional_env_var("ATTRIBUTOR_FALLBACK_TOUCHPOINT") or "call1",
        credit_model=credit_model,
        name_matcher=name_matcher,
        time_decay_half_life_days=env_float("ATTRIBUTOR_TIME_DECAY_HALF_LIFE_DAYS", 7.0),
    )
