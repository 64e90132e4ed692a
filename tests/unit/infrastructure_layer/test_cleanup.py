"""
Unit Tests for CleanupScheduler

Tests the eager sweep and the background loop lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tests.test_fixtures.cache_factory import FakeClock
from tiercache.infrastructure.cache.cleanup import CleanupScheduler
from tiercache.infrastructure.cache.entry import CacheEntry
from tiercache.infrastructure.cache.memory_store import EntryStore


async def _seed(store: EntryStore, clock: FakeClock) -> None:
    now = int(clock() * 1000)
    await store.put(CacheEntry("short", 1, created_at=now, ttl_millis=1_000))
    await store.put(CacheEntry("long", 2, created_at=now, ttl_millis=600_000))


@pytest.mark.unit
class TestSweep:
    @pytest.mark.asyncio
    async def test_sweep_purges_only_expired(self):
        clock = FakeClock()
        store = EntryStore()
        await _seed(store, clock)
        scheduler = CleanupScheduler(store, interval_seconds=300, clock=clock)

        assert await scheduler.sweep() == 0
        clock.advance(5)
        assert await scheduler.sweep() == 1

        assert store.get_keys() == ["long"]
        assert scheduler.get_stats()["purged"] == 1

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            CleanupScheduler(EntryStore(), interval_seconds=0)


@pytest.mark.unit
class TestLoop:
    @pytest.mark.asyncio
    async def test_loop_sweeps_on_each_interval(self):
        clock = FakeClock()
        store = EntryStore()
        await _seed(store, clock)
        clock.advance(5)
        scheduler = CleanupScheduler(store, interval_seconds=0.01, clock=clock)

        scheduler.start()
        assert scheduler.is_running
        for _ in range(100):
            if store.get_size() == 1:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert store.get_keys() == ["long"]
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_is_prompt_and_idempotent(self):
        scheduler = CleanupScheduler(EntryStore(), interval_seconds=3600)

        scheduler.start()
        scheduler.start()  # no second task
        await asyncio.wait_for(scheduler.stop(), timeout=1)
        await scheduler.stop()

        assert scheduler.get_stats()["sweeps"] == 0

    @pytest.mark.asyncio
    async def test_sweep_errors_do_not_kill_the_loop(self):
        store = EntryStore()
        calls = []

        async def flaky_purge(now_millis):
            calls.append(now_millis)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        store.purge_expired = AsyncMock(side_effect=flaky_purge)
        scheduler = CleanupScheduler(store, interval_seconds=0.01)

        scheduler.start()
        for _ in range(100):
            if store.purge_expired.await_count >= 2:
                break
            await asyncio.sleep(0.01)
        assert scheduler.is_running
        await scheduler.stop()

        assert store.purge_expired.await_count >= 2
