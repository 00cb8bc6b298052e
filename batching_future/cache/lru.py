"""
Bounded least-recently-used cache for batch results.

Thin thread-safe wrapper over :class:`cachetools.LRUCache` that separates
"key absent" from "key cached with value ``None``" and tracks hit/miss
statistics.
"""

import logging
import threading
from typing import Any, Generic, Hashable, Tuple, TypeVar

from cachetools import LRUCache as _CachetoolsLRU
from pydantic import BaseModel

from batching_future.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING: Any = object()


class CacheStats(BaseModel):
    """Aggregate cache statistics.

    Attributes:
        hits: Total cache hit count.
        misses: Total cache miss count.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
        entry_count: Current number of entries in the cache.
        capacity: Maximum number of entries.
    """

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    entry_count: int = 0
    capacity: int = 0


class LRUCache(Generic[K, V]):
    """Fixed-capacity LRU map from keys to results.

    When inserting a new key would exceed ``capacity``, the
    least-recently-used entry is evicted.  A successful lookup counts as
    a use.

    Thread safety:
        Every public method acquires an internal ``threading.Lock``.

    Args:
        capacity: Maximum number of entries.  Must be positive.

    Raises:
        ConfigurationError: If ``capacity`` is not a positive integer.
    """

    def __init__(self, capacity: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(
                f"Cache capacity must be a positive integer, got {capacity!r}"
            )
        self._capacity = capacity
        self._store: _CachetoolsLRU = _CachetoolsLRU(maxsize=capacity)
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def lookup(self, key: K) -> Tuple[bool, V]:
        """Look up ``key`` and mark it most recently used on a hit.

        Returns:
            ``(True, value)`` on a hit, ``(False, None)`` on a miss.
        """
        with self._lock:
            value = self._store.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return False, None  # type: ignore[return-value]
            self._hits += 1
            return True, value

    def put(self, key: K, value: V) -> None:
        """Insert or replace ``key``, evicting the LRU entry when full."""
        with self._lock:
            evicting = key not in self._store and len(self._store) >= self._capacity
            self._store[key] = value
        if evicting:
            logger.debug("LRU entry evicted", extra={"capacity": self._capacity})

    def stats(self) -> CacheStats:
        """Return current cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                entry_count=len(self._store),
                capacity=self._capacity,
            )
