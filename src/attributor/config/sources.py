"""Source feed configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT_SECONDS = 30.0

# Scheduler APIs throttle harder than the CRM or forms feeds.
_RATE_LIMITS: dict[str, RateLimit] = {
    "crm": RateLimit(max_calls=5, per_seconds=1.0),
    "scheduler": RateLimit(max_calls=2, per_seconds=1.0),
    "forms": RateLimit(max_calls=2, per_seconds=1.0),
}


@dataclass(frozen=True)
class SourceConfig:
    """Holds the feed endpoint for one source."""

    name: str
    url: str
    token: str | None
    page_size: int
    resilience: ResilienceConfig


def _env_prefix(name: str) -> str:
    return f"ATTRIBUTOR_{name.upper()}"


def _cache_config(prefix: str) -> CacheConfig:
    # Paged feeds move under us; cached pages replay stale cursors until the TTL lapses.
    ttl = env_float(f"{prefix}_CACHE_TTL", 0.0)
    if ttl <= 0:
        return CacheConfig()
    return CacheConfig(enabled=True, ttl_seconds=ttl)


def get_source_config(name: str, *, resilience: ResilienceConfig | None = None) -> SourceConfig:
    prefix = _env_prefix(name)
    values = require_env_vars((f"{prefix}_URL",))
    return SourceConfig(
        name=name,
        url=values[f"{prefix}_URL"],
        token=optional_env_var(f"{prefix}_TOKEN"),
        page_size=env_int(f"{prefix}_PAGE_SIZE", DEFAULT_PAGE_SIZE) or DEFAULT_PAGE_SIZE,
        resilience=resilience
        or ResilienceConfig(
            name=name,
            timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
            ratelimit=_RATE_LIMITS.get(name),
            cache=_cache_config(prefix),
        ),
    )
