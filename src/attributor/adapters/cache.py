"""Query-cache invalidation targets for the dashboard layer."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

import redis

if TYPE_CHECKING:
    from attributor.config.invalidation import InvalidationConfig

log = getLogger(__name__)


def _matches(key: str, prefix: str) -> bool:
    return key == prefix or key.startswith(f"{prefix}:")


class InMemoryCache:
    """Process-local store keyed ``<namespace>:<query>``."""

    def __init__(self) -> None:
        self._entries: dict[str, object] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> object | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: object) -> None:
        with self._lock:
            self._entries[key] = value

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def invalidate(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if _matches(key, prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)


class RedisCacheInvalidator:
    """Deletes every key under ``<prefix>:`` using SCAN, never KEYS."""

    def __init__(self, client: redis.Redis, *, scan_batch_size: int = 500) -> None:
        self._client = client
        self._scan_batch_size = scan_batch_size

    @classmethod
    def from_config(cls, config: InvalidationConfig) -> RedisCacheInvalidator:
        if config.redis_url is None:
            raise ValueError("REDIS_URL is not configured")
        client = redis.Redis.from_url(config.redis_url, decode_responses=True)
        return cls(client, scan_batch_size=config.scan_batch_size)

    def invalidate(self, prefix: str) -> int:
        removed = 0
        batch: list[str] = []
        for key in self._client.scan_iter(match=f"{prefix}:*", count=self._scan_batch_size):
            batch.append(key)
            if len(batch) >= self._scan_batch_size:
                removed += int(self._client.delete(*batch))
                batch = []
        if batch:
            removed += int(self._client.delete(*batch))
        removed += int(self._client.delete(prefix))
        log.info(f"Invalidated {removed} cached entries under {prefix!r}")
        return removed


if TYPE_CHECKING:
    from attributor.domain.ports import CacheInvalidator

    _memory_check: CacheInvalidator = InMemoryCache()
