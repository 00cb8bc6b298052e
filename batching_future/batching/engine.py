"""
Batch engine for batching-future.

Accumulates submitted keys into an arrival-ordered queue and flushes them
to a bulk compute function when either the size threshold or the
max-wait deadline is reached, whichever happens first.

Every queue and timer mutation happens inside one consumer task that
drains an ordered event channel.  Submissions and timer firings both
enter that channel, so size checks, timer arming and flush decisions
never interleave.  The compute function itself runs in a separate task
per batch, after the queue has been cleared.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Set, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from batching_future.batching.provider import BatchingProvider, ComputeFn
from batching_future.batching.queue import PendingRequest, RequestQueue
from batching_future.exceptions import (
    BatchComputationError,
    BatcherClosedError,
    BatchingError,
    ConfigurationError,
    ResultCountMismatchError,
)

logger = logging.getLogger(__name__)


class BatchConfig(BaseModel):
    """Thresholds and options for a batcher.

    Attributes:
        max_batch_size: Flush as soon as this many requests are queued.
        max_wait: Flush this long after the first request of a batch
            arrived.  Numbers are read as seconds.
        cache_size: Capacity of the LRU cache layer.  ``None`` disables it.
        coalesce_misses: Share one engine submission between concurrent
            cache misses for the same key.
    """

    max_batch_size: Optional[int] = Field(default=None, gt=0, strict=True)
    max_wait: Optional[timedelta] = None
    cache_size: Optional[int] = Field(default=None, gt=0, strict=True)
    coalesce_misses: bool = False

    model_config = {"frozen": True}

    @field_validator("max_wait")
    @classmethod
    def _positive_wait(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        if value is not None and value <= timedelta(0):
            raise ValueError("max_wait must be a positive duration")
        return value

    @model_validator(mode="after")
    def _at_least_one_threshold(self) -> "BatchConfig":
        if self.max_batch_size is None and self.max_wait is None:
            raise ValueError(
                "At least one of {max_batch_size, max_wait} must be specified"
            )
        return self

    @classmethod
    def build(cls, **values: Any) -> "BatchConfig":
        """Validate ``values`` and raise :class:`ConfigurationError` on failure."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(
                "At least one of {max_batch_size, max_wait} must be specified "
                f"and be positive values: {exc}"
            ) from exc

    @property
    def max_wait_seconds(self) -> Optional[float]:
        return self.max_wait.total_seconds() if self.max_wait is not None else None


# ---------------------------------------------------------------------------
# Channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewRequest:
    request: PendingRequest


@dataclass(frozen=True)
class TimerFired:
    generation: int


EngineEvent = Union[NewRequest, TimerFired]


class BatchEngine(BatchingProvider[Any, Any]):
    """Coalesces submissions into batches for ``compute``.

    The engine binds to the event loop of its first :meth:`submit` and
    starts its consumer task lazily.

    Warning:
        Without ``max_wait`` a partial batch smaller than
        ``max_batch_size`` is never computed.

    Args:
        compute: Called with the list of keys of one batch; must return
            (or resolve to) one result per key, in the same order.
        config: Validated thresholds.
    """

    def __init__(self, compute: ComputeFn, config: BatchConfig) -> None:
        self._compute = compute
        self._compute_is_async = inspect.iscoroutinefunction(compute) or (
            inspect.iscoroutinefunction(getattr(compute, "__call__", None))
        )
        self._config = config
        self._queue = RequestQueue()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional["asyncio.Queue[EngineEvent]"] = None
        self._worker: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

        self._timer: Optional[asyncio.TimerHandle] = None
        self._timer_generation: int = 0
        self._batch_seq: int = 0
        self._closed = False

        logger.info(
            "BatchEngine initialised",
            extra={
                "max_batch_size": config.max_batch_size,
                "max_wait_seconds": config.max_wait_seconds,
            },
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def submit(self, key: Any) -> asyncio.Future:
        """Queue ``key`` for the next batch.

        Returns:
            A future resolved with ``key``'s result, or failed with the
            batch's error.  After :meth:`close` the future is already
            failed with :class:`BatcherClosedError`.

        Raises:
            RuntimeError: If called without a running event loop.
            BatchingError: If called from a different event loop than
                earlier submissions.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if self._closed:
            future.set_exception(BatcherClosedError("Batcher is closed"))
            return future

        self._ensure_worker(loop)
        assert self._events is not None
        self._events.put_nowait(NewRequest(PendingRequest(key=key, future=future)))
        return future

    def close(self) -> None:
        """Cancel the timer, stop the consumer and fail pending submissions.

        Batches already handed to ``compute`` still complete.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()

        pending = self._queue.drain()
        if self._events is not None:
            while not self._events.empty():
                event = self._events.get_nowait()
                if isinstance(event, NewRequest):
                    pending.append(event.request)

        if self._worker is not None:
            self._worker.cancel()

        error = BatcherClosedError("Batcher closed before the request was computed")
        for request in pending:
            request.fail(error)

        logger.info(
            "BatchEngine closed",
            extra={"failed_pending": len(pending), "inflight_batches": len(self._inflight)},
        )

    async def aclose(self) -> None:
        """Close, then wait for the consumer and in-flight batches."""
        self.close()
        waiting: List[asyncio.Task] = list(self._inflight)
        if self._worker is not None:
            waiting.append(self._worker)
        if waiting:
            await asyncio.gather(*waiting, return_exceptions=True)

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is None:
            self._loop = loop
            self._events = asyncio.Queue()
            self._worker = loop.create_task(self._run())
        elif self._loop is not loop:
            raise BatchingError("BatchEngine is bound to a different event loop")

    async def _run(self) -> None:
        """Apply channel events one at a time until cancelled."""
        assert self._events is not None
        while True:
            event = await self._events.get()
            try:
                if isinstance(event, TimerFired):
                    self._on_timer(event)
                else:
                    self._on_request(event.request)
            except Exception as exc:
                logger.error(
                    "BatchEngine: event handling failed",
                    extra={"event": type(event).__name__, "error": str(exc)},
                    exc_info=True,
                )

    def _on_request(self, request: PendingRequest) -> None:
        if self._queue.is_empty() and self._config.max_wait is not None:
            self._arm_timer()

        size = self._queue.append(request)
        logger.debug("Request enqueued", extra={"queue_size": size})

        max_size = self._config.max_batch_size
        if max_size is not None and size >= max_size:
            self._flush("max_batch_size")

    def _on_timer(self, event: TimerFired) -> None:
        if self._timer is None or event.generation != self._timer_generation:
            # Batch already flushed by size; this firing lost the race.
            return
        self._timer = None
        self._flush("max_wait")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _arm_timer(self) -> None:
        assert self._loop is not None and self._config.max_wait_seconds is not None
        self._timer_generation += 1
        self._timer = self._loop.call_later(
            self._config.max_wait_seconds, self._post_timer, self._timer_generation
        )

    def _post_timer(self, generation: int) -> None:
        if self._closed or self._events is None:
            return
        self._events.put_nowait(TimerFired(generation))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ------------------------------------------------------------------
    # Flush and dispatch
    # ------------------------------------------------------------------

    def _flush(self, trigger: str) -> None:
        self._cancel_timer()
        if self._queue.is_empty():
            return

        batch = self._queue.drain()
        self._batch_seq += 1
        oldest_age = datetime.now(timezone.utc) - batch[0].enqueued_at
        logger.debug(
            "Flushing batch",
            extra={
                "batch_id": self._batch_seq,
                "batch_size": len(batch),
                "trigger": trigger,
                "oldest_age_ms": int(oldest_age.total_seconds() * 1000),
            },
        )

        assert self._loop is not None
        task = self._loop.create_task(self._dispatch(self._batch_seq, batch))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _dispatch(self, batch_id: int, batch: List[PendingRequest]) -> None:
        """Run ``compute`` for one batch and fan results back out."""
        keys = [request.key for request in batch]
        try:
            if self._compute_is_async:
                raw = await self._compute(keys)
            else:
                # Plain functions run on a worker thread, off the event loop.
                raw = await asyncio.to_thread(self._compute, keys)
            if inspect.isawaitable(raw):
                raw = await raw
            results = list(raw)
        except asyncio.CancelledError:
            self._fail_batch(batch, BatcherClosedError("Batch computation was cancelled"))
            raise
        except Exception as exc:
            logger.error(
                "Batch computation failed",
                extra={"batch_id": batch_id, "batch_size": len(batch), "error": str(exc)},
                exc_info=True,
            )
            error = BatchComputationError(f"Batch computation failed: {exc}")
            error.__cause__ = exc
            self._fail_batch(batch, error)
            return

        if len(results) != len(batch):
            logger.error(
                "Batch result count mismatch",
                extra={"batch_id": batch_id, "expected": len(batch), "received": len(results)},
            )
            self._fail_batch(
                batch,
                ResultCountMismatchError(
                    f"Compute returned {len(results)} results for {len(batch)} inputs"
                ),
            )
            return

        for request, value in zip(batch, results):
            request.resolve(value)
        logger.debug("Batch resolved", extra={"batch_id": batch_id, "batch_size": len(batch)})

    @staticmethod
    def _fail_batch(batch: List[PendingRequest], error: BaseException) -> None:
        for request in batch:
            request.fail(error)
