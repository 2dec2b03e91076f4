"""Short-lived, process-local cache for scraped listings."""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Hashable, List, Optional

from cachetools import TTLCache

from .models import NewsItem

# One entry per (section, limit) pair; a handful of sections plus the ranking.
MAX_ENTRIES = 64


class ListingCache:
    """Keep listings per key for ``ttl_seconds``; a ttl of 0 disables caching."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: Optional[TTLCache] = (
            TTLCache(maxsize=MAX_ENTRIES, ttl=ttl_seconds, timer=clock) if ttl_seconds > 0 else None
        )
        # TTLCache is not thread-safe and requests are served from a thread pool.
        self._guard = Lock()

    @property
    def enabled(self) -> bool:
        return self._entries is not None

    def get(self, key: Hashable) -> Optional[List[NewsItem]]:
        if self._entries is None:
            return None
        with self._guard:
            items = self._entries.get(key)
        if items is None:
            return None
        return [item.model_copy() for item in items]

    def set(self, key: Hashable, items: List[NewsItem]) -> None:
        if self._entries is None:
            return
        with self._guard:
            self._entries[key] = [item.model_copy() for item in items]

    def clear(self) -> None:
        if self._entries is None:
            return
        with self._guard:
            self._entries.clear()
