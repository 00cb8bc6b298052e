"""Tests for create_batcher / create_batcher_from_settings."""

import asyncio
from datetime import timedelta
from typing import List

import pytest

from batching_future import (
    BatchComputer,
    BatchEngine,
    CachingBatcher,
    ConfigurationError,
    create_batcher,
    create_batcher_from_settings,
)
from batching_future.config import BatchingSettings, Settings


async def times_two(inputs: List[int]) -> List[int]:
    return [i * 2 for i in inputs]


class TimesThree(BatchComputer[int, int]):
    def compute(self, keys: List[int]) -> List[int]:
        return [k * 3 for k in keys]


class TestCreateBatcherValidation:

    def test_no_thresholds(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher(times_two)

    def test_negative_wait(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher(times_two, max_wait=timedelta(milliseconds=-1))

    def test_zero_wait(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher(times_two, max_wait=0)

    def test_zero_batch_size(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher(times_two, max_batch_size=0)

    def test_zero_cache_size(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher(times_two, max_batch_size=3, cache_size=0)

    def test_non_callable_compute(self) -> None:
        with pytest.raises(ConfigurationError, match="callable"):
            create_batcher(42, max_batch_size=3)  # type: ignore[arg-type]


class TestCreateBatcher:

    def test_without_cache_returns_engine(self) -> None:
        assert isinstance(create_batcher(times_two, max_batch_size=3), BatchEngine)

    def test_with_cache_returns_caching_batcher(self) -> None:
        batcher = create_batcher(times_two, max_batch_size=3, cache_size=8)
        assert isinstance(batcher, CachingBatcher)
        assert batcher.cache.capacity == 8

    async def test_doubling_example(self) -> None:
        async with create_batcher(
            times_two, max_batch_size=3, max_wait=timedelta(milliseconds=500)
        ) as doubler:
            results = await asyncio.gather(*(doubler.submit(i) for i in [4, 6, 8]))
        assert results == [8, 12, 16]

    async def test_batch_computer_instance(self) -> None:
        async with create_batcher(TimesThree(), max_batch_size=2) as tripler:
            assert await asyncio.gather(tripler.submit(1), tripler.submit(2)) == [3, 6]

    async def test_sync_lambda_compute(self) -> None:
        async with create_batcher(
            lambda keys: [k * 2 for k in keys], max_batch_size=3, max_wait=0.5
        ) as doubler:
            assert await asyncio.gather(*(doubler.submit(i) for i in [4, 6, 8])) == [8, 12, 16]


class TestCreateBatcherFromSettings:

    def _settings(self, **batching) -> Settings:
        return Settings(batching=BatchingSettings(**batching))

    def test_builds_engine_from_defaults(self) -> None:
        assert isinstance(create_batcher_from_settings(times_two, self._settings()), BatchEngine)

    def test_cache_size_enables_cache(self) -> None:
        batcher = create_batcher_from_settings(times_two, self._settings(cache_size=16))
        assert isinstance(batcher, CachingBatcher)

    def test_zero_disables_threshold(self) -> None:
        batcher = create_batcher_from_settings(
            times_two, self._settings(max_batch_size=0, max_wait_ms=100)
        )
        assert isinstance(batcher, BatchEngine)

    def test_both_thresholds_disabled(self) -> None:
        with pytest.raises(ConfigurationError):
            create_batcher_from_settings(
                times_two, self._settings(max_batch_size=0, max_wait_ms=0)
            )

    async def test_wait_from_settings_flushes(self) -> None:
        batcher = create_batcher_from_settings(
            times_two, self._settings(max_batch_size=100, max_wait_ms=30)
        )
        assert await asyncio.wait_for(batcher.submit(5), timeout=1) == 10
        await batcher.aclose()
