"""
Construction entry points for batching-future.

:func:`create_batcher` validates thresholds up front and returns either a
bare :class:`BatchEngine` or one wrapped by :class:`CachingBatcher`.
"""

import logging
from datetime import timedelta
from typing import Any, Optional, Union

from batching_future.batching.engine import BatchConfig, BatchEngine
from batching_future.batching.provider import BatchComputer, BatchingProvider, ComputeFn
from batching_future.cache.decorator import CachingBatcher
from batching_future.cache.lru import LRUCache
from batching_future.config import Settings, get_settings
from batching_future.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_batcher(
    compute: Union[ComputeFn, BatchComputer],
    *,
    max_batch_size: Optional[int] = None,
    max_wait: Union[timedelta, float, None] = None,
    cache_size: Optional[int] = None,
    coalesce_misses: bool = False,
) -> BatchingProvider[Any, Any]:
    """Return a batcher that computes transformations in batch.

    The batcher waits until ``max_wait`` has passed since the first item
    of the current batch arrived, or until ``max_batch_size`` items are
    queued, whichever happens first.  A ``None`` threshold is ignored,
    but at least one must be supplied.

    Warning:
        If ``max_wait`` is not supplied, a partial batch may never be
        computed.

    Args:
        compute: Function (or :class:`BatchComputer`) mapping a list of
            keys to a list of results of the same length and order.
        max_batch_size: Positive batch size threshold.
        max_wait: Positive wait threshold, as a ``timedelta`` or seconds.
        cache_size: Positive LRU capacity.  ``None`` means no cache.
        coalesce_misses: Share one submission between concurrent cache
            misses for the same key.

    Raises:
        ConfigurationError: On missing or non-positive thresholds, a
            non-positive ``cache_size``, or a non-callable ``compute``.
    """
    config = BatchConfig.build(
        max_batch_size=max_batch_size,
        max_wait=max_wait,
        cache_size=cache_size,
        coalesce_misses=coalesce_misses,
    )

    if isinstance(compute, BatchComputer):
        compute_fn: ComputeFn = compute.compute
    elif callable(compute):
        compute_fn = compute
    else:
        raise ConfigurationError(f"compute must be callable, got {type(compute).__name__}")

    engine = BatchEngine(compute_fn, config)
    if config.cache_size is None:
        return engine

    logger.info("Caching layer enabled", extra={"cache_size": config.cache_size})
    return CachingBatcher(
        engine,
        LRUCache(config.cache_size),
        coalesce_misses=config.coalesce_misses,
    )


def create_batcher_from_settings(
    compute: Union[ComputeFn, BatchComputer],
    settings: Optional[Settings] = None,
) -> BatchingProvider[Any, Any]:
    """Build a batcher from the ``batching`` settings section.

    A ``max_batch_size`` or ``max_wait_ms`` of 0 disables that threshold;
    a ``cache_size`` of 0 disables caching.
    """
    cfg = (settings or get_settings()).batching
    return create_batcher(
        compute,
        max_batch_size=cfg.max_batch_size or None,
        max_wait=timedelta(milliseconds=cfg.max_wait_ms) if cfg.max_wait_ms else None,
        cache_size=cfg.cache_size or None,
    )
