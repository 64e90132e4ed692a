"""
Cache Module

Provides two-tier caching (in-memory entry store + optional Redis).
"""

from .cache_manager import (
    CacheManager,
    CacheObserver,
    create_cache_manager,
    init_cache,
)
from .cleanup import CleanupScheduler
from .codec import IdentityCodec, ZlibCodec, codec_for
from .entry import CacheEntry
from .memory_store import EntryStore
from .redis_client import RedisClient
from .strategies import ApiResponseCache, QueryCache, UserCache
from .tag_index import TagIndex

__all__ = [
    "CacheManager",
    "CacheObserver",
    "create_cache_manager",
    "init_cache",
    "CacheEntry",
    "EntryStore",
    "RedisClient",
    "TagIndex",
    "CleanupScheduler",
    "IdentityCodec",
    "ZlibCodec",
    "codec_for",
    "QueryCache",
    "ApiResponseCache",
    "UserCache",
]
