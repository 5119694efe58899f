"""Cache invalidation target configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var


@dataclass(frozen=True, slots=True)
class InvalidationConfig:
    redis_url: str | None = None
    scan_batch_size: int = 500


def get_invalidation_config() -> InvalidationConfig:
    return InvalidationConfig(redis_url=optional_env_var("REDIS_URL"))
