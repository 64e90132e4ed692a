"""
Two-Tier Cache Manager

Architecture:
    CacheManager (Public API)
        ├── EntryStore (memory tier, always present)
        ├── DistributedStore (Redis tier, optional, failure-isolated)
        ├── TagIndex (tag -> keys on both tiers)
        ├── CleanupScheduler (eager expiry of the memory tier)
        └── CacheObserver (metrics and logging)

Read Path:
    distributed (if available) -> memory -> miss
    A distributed hit warms the memory tier with the same entry, so the
    entry keeps its original creation time and expires at the same moment.

Write Path:
    memory -> distributed (best effort) -> tag index

Graceful Degradation:
    No public operation raises for infrastructure failures. With Redis
    unreachable the manager behaves exactly like the memory-only cache.
"""

import asyncio
import inspect
import math
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from tiercache.core.config.constants import (
    CLEANUP_INTERVAL_SECONDS,
    DEFAULT_TTL_SECONDS,
    LOG_KEY_MAX_LENGTH,
    CacheMode,
    CacheTier,
    Stage,
)
from tiercache.core.config.settings import Settings, get_settings
from tiercache.core.exceptions import CacheSerializationError, ConfigurationError
from tiercache.core.interfaces.cache import DistributedStore, PayloadCodec
from tiercache.core.logging.logger import get_logger, log_stage
from tiercache.infrastructure.cache.cleanup import CleanupScheduler
from tiercache.infrastructure.cache.codec import IdentityCodec, codec_for
from tiercache.infrastructure.cache.entry import CacheEntry, normalize_tags
from tiercache.infrastructure.cache.memory_store import EntryStore
from tiercache.infrastructure.cache.redis_client import RedisClient
from tiercache.infrastructure.cache.tag_index import TagIndex

logger = get_logger(__name__)


def _log_key(key: str) -> str:
    return key[:LOG_KEY_MAX_LENGTH]


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """
    Tracks cache performance metrics and logs operations.

    Responsibility: All side effects (logging, counters).

    Metrics Tracked:
    - Distributed hits, memory hits, misses
    - Sets, deletes, tag invalidations
    - Serialization errors (corrupt or unserializable payloads)
    """

    def __init__(self, logger_instance=None):
        self._logger = logger_instance or logger

        self._hits_distributed = 0
        self._hits_memory = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._invalidations = 0
        self._serialization_errors = 0

    def record_get(self, source: CacheTier | None, key: str) -> None:
        """
        Record a lookup.

        Args:
            source: Tier that served the hit, or None on a miss
            key: Cache key (truncated for logging)
        """
        if source == CacheTier.DISTRIBUTED:
            self._hits_distributed += 1
            log_stage(self._logger, Stage.CACHE_HIT, "Distributed cache hit", level="debug", cache_key=_log_key(key))
        elif source == CacheTier.MEMORY:
            self._hits_memory += 1
            log_stage(self._logger, Stage.CACHE_HIT, "Memory cache hit", level="debug", cache_key=_log_key(key))
        else:
            self._misses += 1
            log_stage(self._logger, Stage.CACHE_MISS, "Cache miss", level="debug", cache_key=_log_key(key))

    def record_set(self, key: str, ttl_seconds: float, tags: tuple[str, ...]) -> None:
        self._sets += 1
        log_stage(
            self._logger,
            Stage.CACHE_SET,
            "Cache set",
            level="debug",
            cache_key=_log_key(key),
            ttl_seconds=ttl_seconds,
            tags=len(tags),
        )

    def record_delete(self, key: str) -> None:
        self._deletes += 1
        log_stage(self._logger, Stage.CACHE_DELETE, "Cache delete", level="debug", cache_key=_log_key(key))

    def record_invalidation(self, tag: str, keys: int) -> None:
        self._invalidations += 1
        log_stage(self._logger, Stage.CACHE_INVALIDATE, "Tag invalidated", tag=tag, keys=keys)

    def record_serialization_error(self, key: str, error: CacheSerializationError, stage: Stage) -> None:
        self._serialization_errors += 1
        log_stage(
            self._logger,
            stage,
            error.message,
            level="warning",
            cache_key=_log_key(key),
            **{k: v for k, v in error.details.items() if k != "key"},
        )

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache performance statistics.

        Returns:
            Dict with counters, total requests and overall hit rate
        """
        hits = self._hits_distributed + self._hits_memory
        total = hits + self._misses
        hit_rate = hits / total if total > 0 else 0.0

        return {
            "distributed_hits": self._hits_distributed,
            "memory_hits": self._hits_memory,
            "misses": self._misses,
            "sets": self._sets,
            "deletes": self._deletes,
            "invalidations": self._invalidations,
            "serialization_errors": self._serialization_errors,
            "total_requests": total,
            "hit_rate": round(hit_rate, 3),
        }


# =============================================================================
# PUBLIC API
# =============================================================================


class CacheManager:
    """
    Two-tier cache with tag invalidation and graceful degradation.

    Usage:
        async with CacheManager(distributed=RedisClient(url)) as cache:
            await cache.set("user:42:profile", profile, ttl_seconds=600, tags=["user:42"])
            profile = await cache.get("user:42:profile")

            report = await cache.memoize("report:daily", build_report, ttl_seconds=300)

            await cache.invalidate_by_tag("user:42")

    Instances are always constructed explicitly (see create_cache_manager);
    there is no process-wide manager.
    """

    def __init__(
        self,
        *,
        distributed: DistributedStore | None = None,
        entry_store: EntryStore | None = None,
        codec: PayloadCodec | None = None,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        single_flight: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache manager.

        Args:
            distributed: Distributed tier, or None for memory-only mode
            entry_store: Memory tier (a fresh unbounded store by default)
            codec: Payload transform for the distributed tier
            default_ttl_seconds: TTL used when a write passes none
            cleanup_interval_seconds: Memory tier sweep interval
            single_flight: Coalesce concurrent memoize misses per key
            clock: Epoch-seconds clock; tests inject a simulated one
        """
        if default_ttl_seconds < 0.001:
            raise ValueError("default_ttl_seconds must be at least 1 ms")

        self._clock = clock
        self._entry_store = entry_store if entry_store is not None else EntryStore()
        self._distributed = distributed
        self._codec = codec or IdentityCodec()
        self._default_ttl = default_ttl_seconds
        self._single_flight = single_flight

        self._tag_index = TagIndex(self._entry_store, distributed)
        self._scheduler = CleanupScheduler(self._entry_store, cleanup_interval_seconds, clock)
        self._observer = CacheObserver()

        self._inflight: dict[str, asyncio.Task] = {}
        self._connect_task: asyncio.Task | None = None
        self._initialized = False

        log_stage(
            logger,
            Stage.CACHE_INIT,
            "Cache manager created",
            mode=(CacheMode.TIERED if distributed is not None else CacheMode.MEMORY).value,
            codec=self._codec.name,
            default_ttl_seconds=default_ttl_seconds,
            single_flight=single_flight,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self, wait_for_distributed: bool = False) -> None:
        """
        Start the cleanup scheduler and the distributed connection attempt.

        Args:
            wait_for_distributed: Await the connection probe instead of
                running it in the background. Failure is not an error.
        """
        if self._initialized:
            return

        self._scheduler.start()

        if self._distributed is not None:
            if wait_for_distributed:
                await self._distributed.try_connect()
            else:
                self._connect_task = asyncio.create_task(self._distributed.try_connect())

        self._initialized = True
        log_stage(
            logger,
            Stage.CACHE_INIT,
            "Cache manager initialized",
            distributed_configured=self._distributed is not None,
            distributed_available=self._distributed_available(),
        )

    async def shutdown(self) -> None:
        """Stop the scheduler, settle in-flight producers, disconnect."""
        await self._scheduler.stop()

        if self._connect_task is not None:
            if not self._connect_task.done():
                self._connect_task.cancel()
            await asyncio.gather(self._connect_task, return_exceptions=True)
            self._connect_task = None

        if self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)
            self._inflight.clear()

        if self._distributed is not None:
            await self._distributed.disconnect()

        if self._initialized:
            log_stage(logger, Stage.CACHE_SHUTDOWN, "Cache manager shutdown")
        self._initialized = False

    async def __aenter__(self) -> "CacheManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # -------------------------------------------------------------------------
    # Core Cache Operations
    # -------------------------------------------------------------------------

    def now_millis(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> Any | None:
        """
        Get a value, or None on a miss.

        Returns:
            Cached value or None if absent or expired
        """
        entry = await self.get_entry(key)
        return entry.value if entry is not None else None

    async def get_entry(self, key: str) -> CacheEntry | None:
        """
        Look up the full entry (value plus creation time, TTL and tags).

        Distributed tier first when available, memory tier second. Corrupt
        distributed payloads are evicted and treated as absent.
        """
        now = self.now_millis()

        if self._distributed_available():
            entry = await self._read_distributed(key, now)
            if entry is not None:
                if not await self._entry_store.warm(entry):
                    local = await self._entry_store.get(key, now)
                    # A newer local write supersedes the distributed copy
                    if local is not None and local.created_at > entry.created_at:
                        self._observer.record_get(CacheTier.MEMORY, key)
                        return local
                self._observer.record_get(CacheTier.DISTRIBUTED, key)
                return entry

        entry = await self._entry_store.get(key, now)
        self._observer.record_get(CacheTier.MEMORY if entry is not None else None, key)
        return entry

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
        tags: Iterable[str] | None = None,
    ) -> None:
        """
        Store a value on both tiers and index its tags.

        Args:
            key: Cache key
            value: JSON-representable value (the memory tier accepts anything)
            ttl_seconds: Lifetime in seconds (default: default_ttl_seconds)
            tags: Invalidation tags

        Raises:
            ValueError: If ttl_seconds is below 1 ms
        """
        ttl = self._resolve_ttl(ttl_seconds)
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=self.now_millis(),
            ttl_millis=int(ttl * 1000),
            tags=normalize_tags(tags),
        )

        await self._entry_store.put(entry)

        if self._distributed is not None:
            expiry = self._redis_expiry(ttl)
            stored = False
            try:
                payload = self._codec.compress(entry.to_payload())
            except CacheSerializationError as e:
                self._observer.record_serialization_error(key, e, Stage.CACHE_SET)
            else:
                stored = await self._distributed.set_with_expiry(key, payload, expiry)

            if not stored:
                # Never leave an older payload behind the new local entry
                await self._distributed.delete(key)

            if entry.tags:
                await self._tag_index.register(key, entry.tags, expiry)

        self._observer.record_set(key, ttl, entry.tags)

    async def delete(self, key: str) -> None:
        """Remove a key from both tiers. Deleting a missing key is a no-op."""
        await self._entry_store.delete(key)
        if self._distributed is not None:
            await self._distributed.delete(key)
        self._observer.record_delete(key)

    async def invalidate_by_tag(self, tag: str) -> int:
        """
        Delete every key carrying ``tag`` from both tiers.

        Returns:
            Number of keys resolved for the tag
        """
        keys = await self._tag_index.resolve(tag)

        for key in keys:
            await self._entry_store.delete(key)
        if self._distributed is not None and keys:
            await self._distributed.delete(*keys)

        await self._tag_index.forget(tag)
        self._observer.record_invalidation(tag, len(keys))
        return len(keys)

    async def clear(self) -> None:
        """
        Empty the memory tier and FLUSHALL the distributed tier.

        The flush covers the whole Redis database, including keys this
        cache did not write.
        """
        await self._entry_store.clear()
        if self._distributed is not None:
            await self._distributed.flush_all()
        log_stage(logger, Stage.CACHE_CLEAR, "Cache cleared")

    # -------------------------------------------------------------------------
    # Advanced Patterns
    # -------------------------------------------------------------------------

    async def memoize(
        self,
        key: str,
        producer: Callable[[], Any],
        ttl_seconds: float | None = None,
        tags: Iterable[str] | None = None,
    ) -> Any:
        """
        Get from cache or produce and cache the result (cache-aside pattern).

        Args:
            key: Cache key
            producer: Zero-argument callable, sync or async
            ttl_seconds: Lifetime of the produced value
            tags: Invalidation tags

        Returns:
            Cached or produced value

        Producer exceptions propagate unchanged and nothing is cached. A
        None result is returned but not cached.
        """
        ttl = self._resolve_ttl(ttl_seconds)
        tags = normalize_tags(tags)

        cached = await self.get(key)
        if cached is not None:
            return cached

        if not self._single_flight:
            return await self._produce(key, producer, ttl, tags)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._produce(key, producer, ttl, tags))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget_inflight(k, done))
        # Shielded so one cancelled waiter does not cancel the shared producer
        return await asyncio.shield(task)

    async def _produce(self, key: str, producer: Callable[[], Any], ttl: float, tags: tuple[str, ...]) -> Any:
        value = producer()
        if inspect.isawaitable(value):
            value = await value

        if value is None:
            log_stage(logger, Stage.CACHE_MEMOIZE, "Producer returned None, not cached", level="debug", cache_key=_log_key(key))
            return None

        await self.set(key, value, ttl, tags)
        return value

    def _forget_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved; waiters (if any) re-raise it themselves
            task.exception()

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """
        Snapshot of tier sizes, availability and observer counters.
        """
        return {
            "memory_size": self._entry_store.get_size(),
            "memory_keys": self._entry_store.get_keys(),
            "memory_max_entries": self._entry_store.get_max_entries(),
            "distributed_configured": self._distributed is not None,
            "distributed_available": self._distributed_available(),
            **self._observer.get_stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Report cache health.

        Status:
            healthy: every configured tier is reachable
            degraded: distributed tier configured but unreachable
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "initialized": self._initialized,
            "memory": {
                "status": "healthy",
                "size": self._entry_store.get_size(),
                "evictions": self._entry_store.evictions,
            },
            "cleanup": self._scheduler.get_stats(),
        }

        if self._distributed is None:
            health["distributed"] = {"status": "disabled"}
            return health

        monitor = getattr(self._distributed, "health_check", None)
        details = await monitor() if monitor is not None else {}
        details["available"] = self._distributed_available()
        if details["available"]:
            details.setdefault("status", "healthy")
        else:
            details["status"] = "unhealthy"
            health["status"] = "degraded"
        health["distributed"] = details
        return health

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def entry_store(self) -> EntryStore:
        return self._entry_store

    @property
    def distributed(self) -> DistributedStore | None:
        return self._distributed

    @property
    def tag_index(self) -> TagIndex:
        return self._tag_index

    @property
    def scheduler(self) -> CleanupScheduler:
        return self._scheduler

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _distributed_available(self) -> bool:
        return self._distributed is not None and self._distributed.is_available

    def _resolve_ttl(self, ttl_seconds: float | None) -> float:
        if ttl_seconds is None:
            return self._default_ttl
        if ttl_seconds < 0.001:
            raise ValueError(f"ttl_seconds must be at least 1 ms, got {ttl_seconds}")
        return ttl_seconds

    @staticmethod
    def _redis_expiry(ttl_seconds: float) -> int:
        # SETEX/EXPIRE take whole seconds
        return max(1, math.ceil(ttl_seconds))

    async def _read_distributed(self, key: str, now_millis: int) -> CacheEntry | None:
        raw = await self._distributed.get(key)
        if raw is None:
            return None

        try:
            entry = CacheEntry.from_payload(self._codec.decompress(raw), key=key)
        except CacheSerializationError as e:
            self._observer.record_serialization_error(key, e, Stage.CACHE_MISS)
            await self._distributed.delete(key)
            return None

        # Redis expiry is whole seconds; the entry's own window is authoritative
        if not entry.is_live(now_millis):
            return None
        return entry


# =============================================================================
# FACTORY
# =============================================================================


def create_cache_manager(settings: Settings | None = None, **overrides) -> CacheManager:
    """
    Build a CacheManager from settings.

    CACHE_MODE is resolved here, once: ``memory`` builds no distributed tier,
    ``tiered`` builds a RedisClient for REDIS_URL. Keyword overrides replace
    any constructor argument (tests pass a fake ``distributed`` or ``clock``).

    Raises:
        ConfigurationError: If tiered mode has no REDIS_URL
    """
    settings = settings or get_settings()
    cache_settings = settings.cache

    if "distributed" not in overrides:
        distributed = None
        if cache_settings.CACHE_MODE == CacheMode.TIERED:
            if not settings.REDIS_URL:
                raise ConfigurationError(
                    "CACHE_MODE=tiered requires REDIS_URL", details={"cache_mode": "tiered"}
                )
            distributed = RedisClient(settings.REDIS_URL, settings=settings)
        overrides["distributed"] = distributed

    if "entry_store" not in overrides:
        overrides["entry_store"] = EntryStore(max_entries=cache_settings.CACHE_L1_MAX_ENTRIES)
    if "codec" not in overrides:
        overrides["codec"] = codec_for(cache_settings.CACHE_COMPRESSION)

    overrides.setdefault("default_ttl_seconds", cache_settings.CACHE_DEFAULT_TTL)
    overrides.setdefault("cleanup_interval_seconds", cache_settings.CACHE_CLEANUP_INTERVAL)
    overrides.setdefault("single_flight", cache_settings.CACHE_SINGLE_FLIGHT)

    return CacheManager(**overrides)


async def init_cache(settings: Settings | None = None, **overrides) -> CacheManager:
    """
    Build and initialize a CacheManager.

    Usage:
        cache = await init_cache()
        try:
            ...
        finally:
            await cache.shutdown()
    """
    manager = create_cache_manager(settings, **overrides)
    await manager.initialize()
    return manager
