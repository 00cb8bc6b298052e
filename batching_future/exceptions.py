"""
batching-future exception hierarchy.

All custom exceptions inherit from BatchingFutureException so callers can
catch a single base type when they want a broad safety net.
"""


class BatchingFutureException(Exception):
    """Base exception for all batching-future errors."""


class ConfigurationError(BatchingFutureException, ValueError):
    """Raised when batcher thresholds or settings are invalid."""


class BatchingError(BatchingFutureException):
    """Raised when the batch engine is used incorrectly."""


class BatchComputationError(BatchingError):
    """Raised into every caller of a batch whose compute function failed."""


class ResultCountMismatchError(BatchComputationError):
    """Raised when the compute function returns the wrong number of results."""


class BatcherClosedError(BatchingError):
    """Raised for submissions made to, or pending in, a closed batcher."""
