"""Identity resolution: matching, merging and keyed locking."""

from __future__ import annotations

from .locks import KeyedLocks, identity_locks
from .matchers import (
    BigramNameMatcher,
    NameMatcher,
    SubstringNameMatcher,
    TokenSetNameMatcher,
    matcher_for,
)
from .resolver import (
    IdentityResolver,
    Resolution,
    ValidatedEvent,
    follow,
    identity_keys,
    merge_order,
    validate_event,
)

__all__ = [
    "BigramNameMatcher",
    "IdentityResolver",
    "KeyedLocks",
    "NameMatcher",
    "Resolution",
    "SubstringNameMatcher",
    "TokenSetNameMatcher",
    "ValidatedEvent",
    "follow",
    "identity_keys",
    "identity_locks",
    "matcher_for",
    "merge_order",
    "validate_event",
]
