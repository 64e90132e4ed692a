"""
In-process entry store (memory tier).

Always available and authoritative when the distributed tier is absent.
"""

import asyncio
from collections import OrderedDict

from tiercache.infrastructure.cache.entry import CacheEntry


class EntryStore:
    """
    In-memory store of CacheEntry objects.

    Responsibility: Task-safe storage with lazy expiry and an optional LRU bound.

    This is a per-process store, not shared across workers.
    For distributed caching, see RedisClient.

    Implementation Details:
    - Uses OrderedDict for O(1) access and LRU ordering
    - Task-safe via asyncio.Lock (request tasks, refresh tasks and the
      cleanup scheduler all share one instance)
    - Expired entries are evicted when read; the cleanup scheduler purges
      the rest
    - Unbounded by default; max_entries enables LRU eviction
    """

    def __init__(self, max_entries: int | None = None):
        """
        Initialize entry store.

        Args:
            max_entries: Maximum number of entries, or None for no bound
        """
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._evictions = 0

    async def get(self, key: str, now_millis: int) -> CacheEntry | None:
        """
        Get a live entry. Expired entries are evicted and reported as absent.

        LRU Update: Moves accessed entry to end (most recently used)
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_live(now_millis):
                del self._entries[key]
                self._evictions += 1
                return None
            self._entries.move_to_end(key)
            return entry

    async def put(self, entry: CacheEntry) -> None:
        """
        Store an entry, replacing any previous entry for the key.

        Evicts least recently used entries when a bound is configured.
        """
        async with self._lock:
            if entry.key in self._entries:
                self._entries.move_to_end(entry.key)
            self._entries[entry.key] = entry
            self._enforce_bound()

    async def warm(self, entry: CacheEntry) -> bool:
        """
        Store an entry read from the distributed tier unless a newer local
        write for the same key already exists.

        Returns:
            True if the entry was stored
        """
        async with self._lock:
            current = self._entries.get(entry.key)
            if current is not None and current.created_at >= entry.created_at:
                return False
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            self._enforce_bound()
            return True

    async def delete(self, key: str) -> bool:
        """
        Delete an entry.

        Returns:
            True if deleted, False if not found
        """
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def purge_expired(self, now_millis: int) -> int:
        """
        Evict every entry whose TTL window has elapsed.

        Returns:
            Number of entries evicted
        """
        async with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_live(now_millis)]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
            return len(expired)

    async def keys_with_tag(self, tag: str) -> list[str]:
        """
        Linear scan for keys whose entry carries the tag.

        Expired entries are included; invalidation deletes them either way.
        """
        async with self._lock:
            return [key for key, entry in self._entries.items() if entry.has_tag(tag)]

    def _enforce_bound(self) -> None:
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            self._evictions += 1

    def get_size(self) -> int:
        """Current number of physical entries (live or not yet swept)."""
        return len(self._entries)

    def get_max_entries(self) -> int | None:
        return self._max_entries

    def get_keys(self) -> list[str]:
        """
        Get all keys (most recent last).

        Returns:
            List of keys in LRU order (oldest first, newest last)
        """
        return list(self._entries.keys())

    @property
    def evictions(self) -> int:
        return self._evictions
