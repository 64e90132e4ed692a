"""
Strategy Helpers

Call-site conveniences layered on CacheManager. None of them hold cache state
of their own; everything is delegated to the manager.

- QueryCache: memoize arbitrary queries, optionally tagged
- ApiResponseCache: stale-while-revalidate for external API responses
- UserCache: per-user keys with user and data-type tags
"""

import asyncio
import inspect
from collections.abc import Callable, Iterable
from typing import Any

from tiercache.core.config.constants import (
    DATA_TYPE_TAG_FORMAT,
    USER_KEY_FORMAT,
    USER_TAG_FORMAT,
    Stage,
)
from tiercache.core.config.settings import Settings, get_settings
from tiercache.core.logging.logger import get_logger, log_stage
from tiercache.infrastructure.cache.cache_manager import CacheManager

logger = get_logger(__name__)


async def _call(fn: Callable[[], Any]) -> Any:
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    return result


class QueryCache:
    """
    Memoization for database queries and other expensive producers.

    Usage:
        queries = QueryCache(cache)
        orders = await queries.cached_query(
            "orders:recent", fetch_recent_orders, ttl_seconds=60, tags=["orders"]
        )
        await queries.invalidate("orders")
    """

    def __init__(self, manager: CacheManager):
        self._manager = manager

    async def cached_query(
        self,
        key: str,
        query_fn: Callable[[], Any],
        ttl_seconds: float | None = None,
        tags: Iterable[str] | None = None,
    ) -> Any:
        return await self._manager.memoize(key, query_fn, ttl_seconds=ttl_seconds, tags=tags)

    async def invalidate(self, tag: str) -> int:
        return await self._manager.invalidate_by_tag(tag)


class ApiResponseCache:
    """
    API response caching with background refresh (stale-while-revalidate).

    On a hit whose age has reached ``refresh_threshold`` of its TTL, the
    cached value is returned immediately and a re-fetch runs in the
    background, overwriting the entry when it completes. At most one refresh
    per key is in flight.

    A failed refresh is logged and leaves the stale value in place until it
    expires. A failed fetch on a miss propagates to the caller.

    The threshold defaults to CACHE_REFRESH_THRESHOLD.
    """

    def __init__(
        self,
        manager: CacheManager,
        refresh_threshold: float | None = None,
        settings: Settings | None = None,
    ):
        if refresh_threshold is None:
            refresh_threshold = (settings or get_settings()).cache.CACHE_REFRESH_THRESHOLD
        if not 0.0 < refresh_threshold <= 1.0:
            raise ValueError("refresh_threshold must be in (0, 1]")
        self._manager = manager
        self._threshold = refresh_threshold
        self._refreshing: dict[str, asyncio.Task] = {}

    @property
    def refresh_threshold(self) -> float:
        return self._threshold

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Any],
        ttl_seconds: float | None = None,
        tags: Iterable[str] | None = None,
    ) -> Any:
        """
        Get a cached response, fetching on a miss and refreshing when stale.

        Args:
            key: Cache key
            fetcher: Zero-argument callable, sync or async
            ttl_seconds: Lifetime of fetched responses
            tags: Invalidation tags

        Returns:
            Cached or freshly fetched response
        """
        entry = await self._manager.get_entry(key)
        if entry is not None:
            age = entry.age_millis(self._manager.now_millis())
            if age >= self._threshold * entry.ttl_millis:
                self._schedule_refresh(
                    key,
                    fetcher,
                    ttl_seconds if ttl_seconds is not None else entry.ttl_millis / 1000,
                    tags if tags is not None else entry.tags,
                )
            return entry.value

        value = await _call(fetcher)
        if value is not None:
            await self._manager.set(key, value, ttl_seconds=ttl_seconds, tags=tags)
        return value

    def _schedule_refresh(
        self, key: str, fetcher: Callable[[], Any], ttl_seconds: float, tags: Iterable[str]
    ) -> None:
        pending = self._refreshing.get(key)
        if pending is not None and not pending.done():
            return

        task = asyncio.create_task(self._refresh(key, fetcher, ttl_seconds, tags))
        self._refreshing[key] = task
        task.add_done_callback(lambda done, k=key: self._forget(k, done))

    async def _refresh(
        self, key: str, fetcher: Callable[[], Any], ttl_seconds: float, tags: Iterable[str]
    ) -> None:
        try:
            value = await _call(fetcher)
        except Exception as e:
            log_stage(
                logger,
                Stage.BACKGROUND_REFRESH,
                "Background refresh failed, serving stale value",
                level="warning",
                cache_key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if value is None:
            return
        await self._manager.set(key, value, ttl_seconds=ttl_seconds, tags=tags)
        log_stage(logger, Stage.BACKGROUND_REFRESH, "Background refresh complete", level="debug", cache_key=key)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._refreshing.get(key) is task:
            del self._refreshing[key]

    @property
    def pending_refreshes(self) -> int:
        return sum(1 for task in self._refreshing.values() if not task.done())

    async def drain(self) -> None:
        """Wait for every in-flight refresh to finish."""
        if self._refreshing:
            await asyncio.gather(*list(self._refreshing.values()), return_exceptions=True)


class UserCache:
    """
    User-scoped caching.

    Keys: ``user:{user_id}:{data_type}``
    Tags: ``user:{user_id}`` and ``dataType:{data_type}``

    So either "drop everything for user 42" or "drop every profile" is one
    tag invalidation.
    """

    def __init__(self, manager: CacheManager):
        self._manager = manager

    @staticmethod
    def user_key(user_id: Any, data_type: str) -> str:
        return USER_KEY_FORMAT.format(user_id=user_id, data_type=data_type)

    @staticmethod
    def user_tags(user_id: Any, data_type: str) -> list[str]:
        return [
            USER_TAG_FORMAT.format(user_id=user_id),
            DATA_TYPE_TAG_FORMAT.format(data_type=data_type),
        ]

    async def get(self, user_id: Any, data_type: str) -> Any | None:
        return await self._manager.get(self.user_key(user_id, data_type))

    async def set(self, user_id: Any, data_type: str, value: Any, ttl_seconds: float | None = None) -> None:
        await self._manager.set(
            self.user_key(user_id, data_type),
            value,
            ttl_seconds=ttl_seconds,
            tags=self.user_tags(user_id, data_type),
        )

    async def memoize(
        self,
        user_id: Any,
        data_type: str,
        producer: Callable[[], Any],
        ttl_seconds: float | None = None,
    ) -> Any:
        return await self._manager.memoize(
            self.user_key(user_id, data_type),
            producer,
            ttl_seconds=ttl_seconds,
            tags=self.user_tags(user_id, data_type),
        )

    async def invalidate_user(self, user_id: Any) -> int:
        """Drop every cached item for one user."""
        return await self._manager.invalidate_by_tag(USER_TAG_FORMAT.format(user_id=user_id))

    async def invalidate_data_type(self, data_type: str) -> int:
        """Drop one data type for every user."""
        return await self._manager.invalidate_by_tag(DATA_TYPE_TAG_FORMAT.format(data_type=data_type))
