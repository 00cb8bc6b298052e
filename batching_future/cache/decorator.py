"""
Caching decorator for batching providers.

Answers repeated keys from an :class:`LRUCache` without reaching the
wrapped provider.  Misses are delegated and their results cached once
they resolve.  Failures are never cached.
"""

import asyncio
import logging
from typing import Any, Dict

from batching_future.batching.provider import BatchingProvider
from batching_future.cache.lru import LRUCache
from batching_future.exceptions import BatcherClosedError

logger = logging.getLogger(__name__)


class CachingBatcher(BatchingProvider[Any, Any]):
    """Wraps a provider with a bounded LRU result cache.

    Args:
        inner: The provider that computes misses.
        cache: Result cache shared by all submissions.
        coalesce_misses: When ``True``, concurrent misses for one key share
            a single delegated submission.  When ``False`` every miss
            delegates independently.
    """

    def __init__(
        self,
        inner: BatchingProvider[Any, Any],
        cache: LRUCache,
        coalesce_misses: bool = False,
    ) -> None:
        self._inner = inner
        self._cache = cache
        self._coalesce = coalesce_misses
        self._inflight: Dict[Any, asyncio.Future] = {}
        self._closed = False

    @property
    def cache(self) -> LRUCache:
        return self._cache

    def submit(self, key: Any) -> asyncio.Future:
        """Return a future for ``key``, resolved at once on a cache hit."""
        loop = asyncio.get_running_loop()
        outer = loop.create_future()
        if self._closed:
            outer.set_exception(BatcherClosedError("Batcher is closed"))
            return outer

        hit, value = self._cache.lookup(key)
        if hit:
            logger.debug("Cache hit", extra={"key": repr(key)[:40]})
            outer.set_result(value)
            return outer

        inner = self._inflight.get(key) if self._coalesce else None
        if inner is None:
            inner = self._inner.submit(key)
            if self._coalesce:
                self._inflight[key] = inner
            inner.add_done_callback(lambda done: self._store(key, done))

        inner.add_done_callback(lambda done: self._relay(done, outer))
        return outer

    def _store(self, key: Any, done: asyncio.Future) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if done.cancelled() or done.exception() is not None:
            return
        self._cache.put(key, done.result())

    @staticmethod
    def _relay(done: asyncio.Future, outer: asyncio.Future) -> None:
        if outer.done():
            return
        if done.cancelled():
            outer.cancel()
            return
        exc = done.exception()
        if exc is not None:
            outer.set_exception(exc)
        else:
            outer.set_result(done.result())

    def close(self) -> None:
        self._closed = True
        self._inner.close()

    async def aclose(self) -> None:
        self._closed = True
        await self._inner.aclose()
