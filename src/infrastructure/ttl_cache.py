"""In-process TTL cache with an LRU size bound.

Entries are ``(stored_at, data)`` pairs and are valid while
``now - stored_at < ttl``. When ``max_entries`` is reached the least recently
used entry is evicted. The clock is injectable so tests can move time.

Usage:
    cache = TTLCache(ttl_seconds=600, max_entries=1024)
    cache.set(("document", "doc-1"), analysis)
    analysis = cache.get(("document", "doc-1"))
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Time-expiring, size-bounded key/value cache.

    Not thread-safe; intended for use from a single event loop, where
    concurrent writers only overwrite identical keys.
    """

    DEFAULT_MAX_ENTRIES = 1024

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: Optional[int] = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """
        Args:
            ttl_seconds: Lifetime of an entry
            max_entries: LRU bound, None for unbounded
            clock: Monotonic time source in seconds
            name: Label used in log messages
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._name = name
        self._entries: "OrderedDict[Hashable, Tuple[float, T]]" = OrderedDict()
        self.stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0}

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return None

        stored_at, data = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            self.stats["expirations"] += 1
            self.stats["misses"] += 1
            logger.debug(f"{self._name}: entry expired for {key!r}")
            return None

        self._entries.move_to_end(key)
        self.stats["hits"] += 1
        return data

    def set(self, key: Hashable, data: T) -> None:
        self._entries[key] = (self._clock(), data)
        self._entries.move_to_end(key)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.stats["evictions"] += 1
                logger.debug(f"{self._name}: evicted {evicted!r}")

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key satisfies ``predicate``."""
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() - entry[0] < self.ttl_seconds

    def __len__(self) -> int:
        return len(self._entries)
