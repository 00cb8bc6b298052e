"""Result caching in front of a batcher."""

from batching_future.cache.decorator import CachingBatcher
from batching_future.cache.lru import CacheStats, LRUCache

__all__ = [
    "CacheStats",
    "CachingBatcher",
    "LRUCache",
]
