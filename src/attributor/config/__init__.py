"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .invalidation import InvalidationConfig, get_invalidation_config
from .logging import configure_logging, log_level_from_env
from .scoring import ScoringConfig, get_scoring_config
from .sources import SourceConfig, get_source_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidationConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ScoringConfig",
    "SourceConfig",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "log_level_from_env",
    "get_database_config",
    "get_invalidation_config",
    "get_scoring_config",
    "get_source_config",
    "get_storage_config",
    "get_sync_config",
    "require_env_vars",
]
