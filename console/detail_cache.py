"""
Detail Cache

Per-id store of fully hydrated detail objects (a chat with its messages, a
device with its diagnostics) so that re-selecting an entity does not hit the
network again.

- fetch_and_cache() returns a fresh entry without calling the fetcher,
  otherwise fetches once; concurrent callers for the same id share the
  single in-flight fetch.
- invalidate() after a successful mutation forces the next read to re-fetch.
  A fetch that was already in flight when the id was invalidated is handed
  to its waiters but not stored.
- update() patches a cached detail in place when the mutation result is
  known locally (cheaper than a round trip).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]


@dataclass
class CacheEntry:
    entity_id: str
    detail: Any
    fetched_at: float


class DetailCache:
    def __init__(self, max_age: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            max_age: Seconds an entry stays fresh. None means a loaded entry
                is fresh until invalidated or evicted.
            clock: Monotonic time source
        """
        self.max_age = max_age
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self._generations: Dict[str, int] = {}

    def get(self, entity_id: str) -> Optional[CacheEntry]:
        return self._entries.get(entity_id)

    def is_fresh(self, entry: CacheEntry) -> bool:
        if self.max_age is None:
            return True
        return self._clock() - entry.fetched_at < self.max_age

    def is_loading(self, entity_id: str) -> bool:
        return entity_id in self._inflight

    async def fetch_and_cache(self, entity_id: str, fetcher: Fetcher) -> Any:
        entry = self._entries.get(entity_id)
        if entry is not None and self.is_fresh(entry):
            return entry.detail

        inflight = self._inflight.get(entity_id)
        if inflight is None:
            generation = self._generations.get(entity_id, 0)
            inflight = asyncio.ensure_future(self._fetch(entity_id, fetcher, generation))
            self._inflight[entity_id] = inflight
        # One waiter giving up must not cancel the fetch for the others.
        return await asyncio.shield(inflight)

    async def _fetch(self, entity_id: str, fetcher: Fetcher, generation: int) -> Any:
        try:
            detail = await fetcher(entity_id)
        finally:
            self._inflight.pop(entity_id, None)
        if self._generations.get(entity_id, 0) == generation:
            self._entries[entity_id] = CacheEntry(entity_id=entity_id, detail=detail, fetched_at=self._clock())
        else:
            logger.debug(f"Detail for {entity_id} invalidated while loading; not cached")
        return detail

    def put(self, entity_id: str, detail: Any) -> CacheEntry:
        entry = CacheEntry(entity_id=entity_id, detail=detail, fetched_at=self._clock())
        self._entries[entity_id] = entry
        return entry

    def update(self, entity_id: str, updater: Callable[[Any], Any]) -> Optional[CacheEntry]:
        """
        Replace the cached detail with ``updater(detail)``.

        A fetch in flight for the id is marked stale so it cannot overwrite
        the patched entry. Returns None when nothing was cached.
        """
        entry = self._entries.get(entity_id)
        if entry is None:
            self.invalidate(entity_id)
            return None
        self._bump(entity_id)
        entry.detail = updater(entry.detail)
        return entry

    def invalidate(self, entity_id: str) -> None:
        self._bump(entity_id)
        if self._entries.pop(entity_id, None) is not None:
            logger.debug(f"Detail for {entity_id} invalidated")

    def evict(self, entity_id: str) -> None:
        self._entries.pop(entity_id, None)

    def clear(self) -> None:
        for entity_id in list(self._entries):
            self.invalidate(entity_id)

    def _bump(self, entity_id: str) -> None:
        if entity_id in self._inflight:
            self._generations[entity_id] = self._generations.get(entity_id, 0) + 1

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
