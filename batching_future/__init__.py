"""Coalesce concurrent requests into batched computations."""

from batching_future.batching import BatchComputer, BatchConfig, BatchEngine, BatchingProvider
from batching_future.cache import CachingBatcher, LRUCache
from batching_future.exceptions import (
    BatchComputationError,
    BatcherClosedError,
    BatchingError,
    BatchingFutureException,
    ConfigurationError,
    ResultCountMismatchError,
)
from batching_future.factory import create_batcher, create_batcher_from_settings

__all__ = [
    "BatchComputationError",
    "BatchComputer",
    "BatchConfig",
    "BatchEngine",
    "BatcherClosedError",
    "BatchingError",
    "BatchingFutureException",
    "BatchingProvider",
    "CachingBatcher",
    "ConfigurationError",
    "LRUCache",
    "ResultCountMismatchError",
    "create_batcher",
    "create_batcher_from_settings",
]
