"""
Ateria - In-Memory TTL Cache

Small key/value cache used by the Fineli client. Expired entries are kept
so they can still be served when the upstream API is failing.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 2000


@dataclass
class CacheEntry:
    data: Any
    expires_at: float


class MemoryCache:
    """
    TTL cache keyed by string.

    `get` only returns fresh entries; `get_stale` returns whatever was last
    stored, expired or not. Holds at most `max_entries` keys; when full, the
    oldest written key is dropped.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self._store: dict[str, CacheEntry] = {}
        self._clock = clock
        self.max_entries = max_entries

    def get(self, key: str) -> Optional[Any]:
        """Return value if not expired, else None."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            return None
        return entry.data

    def get_stale(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        return entry.data if entry else None

    def set(self, key: str, data: Any, ttl_seconds: float) -> None:
        # Re-inserting moves the key to the newest position
        self._store.pop(key, None)
        while self._store and len(self._store) >= self.max_entries:
            oldest = next(iter(self._store))
            del self._store[oldest]
            logger.debug(f"Cache full, evicted {oldest}")
        self._store[key] = CacheEntry(data=data, expires_at=self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        count = len(self._store)
        self._store.clear()
        logger.debug(f"Cleared {count} cache entries")

    def __len__(self) -> int:
        return len(self._store)
