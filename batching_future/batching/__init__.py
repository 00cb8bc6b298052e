"""Request batching (size- and deadline-triggered flushing)."""

from batching_future.batching.engine import BatchConfig, BatchEngine
from batching_future.batching.provider import BatchComputer, BatchingProvider
from batching_future.batching.queue import PendingRequest, RequestQueue

__all__ = [
    "BatchConfig",
    "BatchEngine",
    "BatchComputer",
    "BatchingProvider",
    "PendingRequest",
    "RequestQueue",
]
