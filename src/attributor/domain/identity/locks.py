"""Process-wide keyed locks serializing contact creation and merges."""

from __future__ import annotations

import threading
import zlib
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

DEFAULT_STRIPES = 64


class KeyedLocks:
    """Fixed pool of locks addressed by identity key.

    Keys hash onto stripes; stripes are always acquired in ascending order so callers
    holding several keys cannot deadlock each other.
    """

    def __init__(self, stripes: int = DEFAULT_STRIPES) -> None:
        if stripes < 1:
            raise ValueError("stripes must be positive")
        self._locks = tuple(threading.Lock() for _ in range(stripes))

    def _stripe(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % len(self._locks)

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        stripes = sorted({self._stripe(key) for key in keys})
        acquired: list[threading.Lock] = []
        try:
            for stripe in stripes:
                lock = self._locks[stripe]
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


_GLOBAL_LOCKS = KeyedLocks()


def identity_locks() -> KeyedLocks:
    return _GLOBAL_LOCKS
