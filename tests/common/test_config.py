from __future__ import annotations

import logging
import os

import pytest

from attributor.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_invalidation_config,
    get_scoring_config,
    get_source_config,
    get_sync_config,
    log_level_from_env,
    require_env_vars,
)
from attributor.config.sync import DEFAULT_SYNC_TIMEOUT_MS


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_raises_when_any_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_require_env_vars_restores_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMP_VAR", "123")

    assert os.getenv("TEMP_VAR") == "123"
    assert require_env_vars(["TEMP_VAR"]) == {"TEMP_VAR": "123"}


def test_source_config_reads_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTRIBUTOR_SCHEDULER_URL", "https://scheduler.example/feed")
    monkeypatch.setenv("ATTRIBUTOR_SCHEDULER_TOKEN", " abc ")
    monkeypatch.setenv("ATTRIBUTOR_SCHEDULER_PAGE_SIZE", "25")

    config = get_source_config("scheduler")

    assert config.url == "https://scheduler.example/feed"
    assert config.token == "abc"
    assert config.page_size == 25
    assert config.resilience.ratelimit is not None
    assert config.resilience.ratelimit.max_calls == 2
    assert config.resilience.cache.enabled is False


def test_source_cache_is_enabled_by_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTRIBUTOR_FORMS_URL", "https://forms.example/feed")
    monkeypatch.setenv("ATTRIBUTOR_FORMS_CACHE_TTL", "90")

    cache = get_source_config("forms").resilience.cache

    assert cache.enabled is True
    assert cache.backend == "sqlite"
    assert cache.ttl_seconds == 90.0


def test_source_config_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ATTRIBUTOR_FORMS_URL", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_source_config("forms")


def test_sync_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ATTRIBUTOR_SYNC_LIMIT",
        "ATTRIBUTOR_SYNC_TIMEOUT_MS",
        "ATTRIBUTOR_CACHE_NAMESPACE",
        "ATTRIBUTOR_SYNC_MAX_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)

    config = get_sync_config()

    assert config.limit is None
    assert config.timeout_ms == DEFAULT_SYNC_TIMEOUT_MS
    assert config.cache_namespace == "dashboard"
    assert config.max_workers == 3


def test_sync_config_rejects_non_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTRIBUTOR_SYNC_LIMIT", "lots")

    with pytest.raises(ConfigurationError, match="ATTRIBUTOR_SYNC_LIMIT"):
        get_sync_config()


def test_scoring_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTRIBUTOR_CREDIT_MODEL", "time_decay")
    monkeypatch.setenv("ATTRIBUTOR_NAME_MATCHER", "token_set")
    monkeypatch.setenv("ATTRIBUTOR_COVERAGE_THRESHOLD", "0.75")

    config = get_scoring_config()

    assert config.credit_model == "time_decay"
    assert config.name_matcher == "token_set"
    assert config.coverage_threshold == 0.75
    assert config.fallback_touchpoint_type == "call1"


@pytest.mark.parametrize(
    ("name", "value"),
    [("ATTRIBUTOR_CREDIT_MODEL", "w_shaped"), ("ATTRIBUTOR_NAME_MATCHER", "soundex")],
)
def test_scoring_config_rejects_unknown_strategies(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_scoring_config()


def test_invalidation_config_treats_blank_url_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_URL", "  ")

    assert get_invalidation_config().redis_url is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, logging.INFO), ("debug", logging.DEBUG), ("Warning", logging.WARNING), ("15", 15)],
)
def test_log_level_from_env(
    monkeypatch: pytest.MonkeyPatch, raw: str | None, expected: int
) -> None:
    if raw is None:
        monkeypatch.delenv("ATTRIBUTOR_LOG_LEVEL", raising=False)
    else:
        monkeypatch.setenv("ATTRIBUTOR_LOG_LEVEL", raw)

    assert log_level_from_env() == expected


def test_log_level_rejects_unknown_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTRIBUTOR_LOG_LEVEL", "chatty")

    with pytest.raises(ConfigurationError, match="chatty"):
        log_level_from_env()
