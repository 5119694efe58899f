"""Port for the external query cache consumed by the dashboard layer."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheInvalidator(Protocol):
    def invalidate(self, prefix: str) -> int:
        """Drop every entry under ``prefix`` and return how many were removed."""
        ...
