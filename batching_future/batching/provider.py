"""Contracts shared by the batch engine and the caching decorator."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, List, Sequence, TypeVar, Union

K = TypeVar("K")
V = TypeVar("V")

ComputeResult = Union[Sequence[Any], Awaitable[Sequence[Any]]]
ComputeFn = Callable[[List[Any]], ComputeResult]


class BatchComputer(ABC, Generic[K, V]):
    """Converts every item of ``keys`` to an output value.

    There must be exactly one output per input, with ``keys[i]`` producing
    ``output[i]``.  Implementations may be synchronous or return an
    awaitable.
    """

    @abstractmethod
    def compute(self, keys: List[K]) -> ComputeResult:
        raise NotImplementedError


class BatchingProvider(ABC, Generic[K, V]):
    """Interface to submit (possibly batched) computation requests."""

    @abstractmethod
    def submit(self, key: K) -> asyncio.Future:
        """Queue ``key`` and return a future for its result.

        Must be called from the running event loop.  Never blocks.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Stop accepting submissions and fail those still pending."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Close and wait for background work to settle."""
        self.close()

    async def __aenter__(self) -> "BatchingProvider[K, V]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
