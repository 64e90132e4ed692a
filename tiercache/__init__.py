"""
tiercache

Two-tier (memory + Redis) asyncio cache with tag invalidation and graceful
degradation.

Usage:
    from tiercache import init_cache

    cache = await init_cache()          # CACHE_MODE / REDIS_URL from env
    user = await cache.memoize("user:42:profile", load_profile, ttl_seconds=1800, tags=["user:42"])
    await cache.invalidate_by_tag("user:42")
    await cache.shutdown()
"""

from tiercache.core.config import Settings, get_settings
from tiercache.core.exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    ConfigurationError,
    TierCacheError,
)
from tiercache.infrastructure.cache import (
    ApiResponseCache,
    CacheEntry,
    CacheManager,
    QueryCache,
    RedisClient,
    UserCache,
    create_cache_manager,
    init_cache,
)

__version__ = "1.0.0"

__all__ = [
    "CacheManager",
    "CacheEntry",
    "RedisClient",
    "create_cache_manager",
    "init_cache",
    "QueryCache",
    "ApiResponseCache",
    "UserCache",
    "Settings",
    "get_settings",
    "TierCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
]
