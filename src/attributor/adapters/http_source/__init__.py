"""Public interface for the generic HTTP feed adapter."""

from __future__ import annotations

from .client import HttpSourceAdapter
from .schema import FeedPage, FeedRecord
from .translator import to_page, to_raw_event

__all__ = [
    "FeedPage",
    "FeedRecord",
    "HttpSourceAdapter",
    "to_page",
    "to_raw_event",
]
