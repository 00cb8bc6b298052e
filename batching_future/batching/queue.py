"""
Pending-request records and the ordered batch queue.

The queue has a single writer, the batch engine's event consumer, so it
carries no lock of its own.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PendingRequest(BaseModel):
    """A single submission waiting for its batch.

    Attributes:
        key: The caller-supplied input value.
        future: ``asyncio.Future`` resolved with the key's result.
            Excluded from Pydantic serialisation.
        enqueued_at: UTC timestamp when the submission was made.
    """

    key: Any
    future: asyncio.Future = Field(exclude=True)
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def resolve(self, value: Any) -> bool:
        """Set the result unless the future is already done.

        Returns:
            ``True`` if the value was delivered, ``False`` if the caller
            had already cancelled or the future was settled.
        """
        if self.future.done():
            return False
        self.future.set_result(value)
        return True

    def fail(self, exc: BaseException) -> bool:
        """Set ``exc`` on the future unless it is already done."""
        if self.future.done():
            return False
        self.future.set_exception(exc)
        return True


class RequestQueue:
    """Arrival-ordered queue of :class:`PendingRequest`.

    Non-empty only between the first unflushed submission and the next
    flush.  :meth:`drain` snapshots and clears in one step.
    """

    def __init__(self) -> None:
        self._items: Deque[PendingRequest] = deque()

    def append(self, request: PendingRequest) -> int:
        """Add a request at the tail.

        Returns:
            The queue length after the append.
        """
        self._items.append(request)
        return len(self._items)

    def drain(self) -> List[PendingRequest]:
        """Remove and return every queued request in arrival order."""
        batch = list(self._items)
        self._items.clear()
        return batch

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)
