"""Synchronization defaults for ingest services."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int, optional_env_var

DEFAULT_SYNC_LIMIT: int | None = None
DEFAULT_SYNC_TIMEOUT_MS = 540_000
DEFAULT_CACHE_NAMESPACE = "dashboard"
DEFAULT_MAX_WORKERS = 3


@dataclass(frozen=True, slots=True)
class SyncConfig:
    limit: int | None = DEFAULT_SYNC_LIMIT
    timeout_ms: int | None = DEFAULT_SYNC_TIMEOUT_MS
    cache_namespace: str = DEFAULT_CACHE_NAMESPACE
    max_workers: int = DEFAULT_MAX_WORKERS


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        limit=env_int("ATTRIBUTOR_SYNC_LIMIT", DEFAULT_SYNC_LIMIT),
        timeout_ms=env_int("ATTRIBUTOR_SYNC_TIMEOUT_MS", DEFAULT_SYNC_TIMEOUT_MS),
        cache_namespace=optional_env_var("ATTRIBUTOR_CACHE_NAMESPACE") or DEFAULT_CACHE_NAMESPACE,
        max_workers=env_int("ATTRIBUTOR_SYNC_MAX_WORKERS", DEFAULT_MAX_WORKERS)
        or DEFAULT_MAX_WORKERS,
    )
