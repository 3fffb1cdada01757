"""
Entity Store

Process-wide store of the last-known-good catalog data: product snapshots
and page entries, each wrapped in a CacheEntry keyed by CacheKey.
The store has no fetch logic; it is written only by successful fetches and
successful mutations, and announces every change to its subscribers.

Every write and invalidation advances a sequence number. A fetch records
``mark()`` when it starts and passes it as ``as_of`` when storing its result,
so a result that raced an invalidation lands already stale and a result older
than the cached value is not written at all.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ...constants import get_current_timestamp
from ...core.observable import EventNotifier
from ...domain.catalog.entities import CacheEntry
from ...domain.catalog.value_objects import CacheKey, TTL

logger = logging.getLogger(__name__)


class EntityStore:
    """
    In-memory cache store with an explicit lifecycle.

    Created at session start, cleared by ``clear()`` at session end.
    """

    def __init__(self, clock: Callable[[], datetime] = get_current_timestamp):
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._clock = clock
        self._sequence = 0
        self._as_of: Dict[CacheKey, int] = {}
        self._invalidated_at: Dict[CacheKey, int] = {}
        self._kind_invalidated_at: Dict[str, int] = {}
        self.changes: EventNotifier[CacheKey] = EventNotifier("entity_store")

    def now(self) -> datetime:
        return self._clock()

    def mark(self) -> int:
        """Current sequence number; taken by a fetch when it starts."""
        return self._sequence

    def invalidated_since(self, key: CacheKey, mark: int) -> bool:
        """Check if key (or its whole kind) was invalidated after mark."""
        return (
            self._invalidated_at.get(key, 0) > mark
            or self._kind_invalidated_at.get(key.kind, 0) > mark
        )

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Get cache entry by key (stale entries included)."""
        return self._entries.get(key)

    def put(
        self, key: CacheKey, value, ttl: TTL, as_of: Optional[int] = None
    ) -> Optional[CacheEntry]:
        """
        Store a value, replacing any previous entry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Staleness threshold
            as_of: Sequence mark the value dates from (a fetch's start);
                defaults to now, i.e. a value confirmed at this moment

        Returns:
            The stored entry, or None when the cached value is newer than
            ``as_of`` and was kept
        """
        if as_of is None:
            as_of = self._advance()
        elif self._as_of.get(key, -1) > as_of:
            logger.debug("Kept newer cache entry", extra={"key": str(key)})
            return None

        entry = CacheEntry.create(key, value, ttl, now=self._clock())
        if self.invalidated_since(key, as_of):
            # Invalidated while the value was in flight
            entry.invalidate()

        self._entries[key] = entry
        self._as_of[key] = as_of
        self._advance()
        logger.debug(
            "Stored cache entry",
            extra={"key": str(key), "stale": entry.invalidated},
        )
        self.changes.notify(key)
        return entry

    def contains(self, key: CacheKey) -> bool:
        return key in self._entries

    def is_stale(self, key: CacheKey) -> bool:
        """Missing entries count as stale."""
        entry = self._entries.get(key)
        return entry is None or entry.is_stale(self._clock())

    def invalidate(self, key: CacheKey) -> bool:
        """
        Mark one entry stale. Fetches of key already in flight land stale.

        Returns:
            False if nothing is cached for key
        """
        self._invalidated_at[key] = self._advance()
        entry = self._entries.get(key)
        if entry is None:
            return False

        entry.invalidate()
        self.changes.notify(key)
        return True

    def invalidate_kind(self, kind: str) -> int:
        """Mark every entry of a resource kind stale, in flight ones included."""
        self._kind_invalidated_at[kind] = self._advance()
        keys = self.keys(kind)
        for key in keys:
            self._entries[key].invalidate()
            self.changes.notify(key)
        return len(keys)

    def remove(self, key: CacheKey) -> bool:
        """Evict one entry."""
        self._as_of.pop(key, None)
        if self._entries.pop(key, None) is None:
            return False
        self.changes.notify(key)
        return True

    def keys(self, kind: Optional[str] = None) -> List[CacheKey]:
        if kind is None:
            return list(self._entries)
        return [key for key in self._entries if key.kind == kind]

    def clear(self) -> None:
        """Tear the store down: drop every entry and every subscriber."""
        count = len(self._entries)
        self._entries.clear()
        self._as_of.clear()
        self._invalidated_at.clear()
        self._kind_invalidated_at.clear()
        self.changes.clear_listeners()
        logger.info("Entity store cleared", extra={"entries": count})

    def _advance(self) -> int:
        self._sequence += 1
        return self._sequence

    def __len__(self) -> int:
        return len(self._entries)
