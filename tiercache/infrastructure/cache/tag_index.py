"""
Tag Index

Maps a tag to the keys carrying it, on both tiers.

Storage:
    - Distributed tier: one Redis set per tag at ``tag:{tag}``; its expiry is
      refreshed to the entry TTL on every tagged write
    - Memory tier: no separate index; tags live on each CacheEntry and are
      found with a linear scan of the entry store

A tag's distributed set can outlive individual members (a member key may
have expired or been deleted). Deleting a stale member is a no-op, so
invalidation tolerates it.
"""

from collections.abc import Iterable

from tiercache.core.config.constants import TAG_KEY_PREFIX, Stage
from tiercache.core.interfaces.cache import DistributedStore
from tiercache.core.logging.logger import get_logger, log_stage
from tiercache.infrastructure.cache.memory_store import EntryStore

logger = get_logger(__name__)


class TagIndex:
    """
    Tag-to-key lookup across the entry store and the distributed store.

    Args:
        entry_store: Memory tier
        distributed: Distributed tier, or None in memory-only mode
    """

    def __init__(self, entry_store: EntryStore, distributed: DistributedStore | None = None):
        self._entry_store = entry_store
        self._distributed = distributed

    @staticmethod
    def tag_key(tag: str) -> str:
        return f"{TAG_KEY_PREFIX}{tag}"

    async def register(self, key: str, tags: Iterable[str], ttl_seconds: int) -> None:
        """
        Record ``key`` under each tag on the distributed tier (SADD + EXPIRE).

        Best effort: the adapter swallows failures.
        """
        if self._distributed is None:
            return

        registered = 0
        for tag in tags:
            tag_key = self.tag_key(tag)
            if await self._distributed.add_to_set(tag_key, key):
                await self._distributed.expire_set(tag_key, ttl_seconds)
                registered += 1

        if registered:
            log_stage(logger, Stage.TAG_REGISTER, "Tags registered", level="debug", tags=registered)

    async def resolve(self, tag: str) -> list[str]:
        """
        Keys carrying ``tag`` on either tier.

        Distributed tag sets only grow until they expire or are invalidated,
        so a key re-set without ``tag`` still resolves through them. The
        local scan sees current tags only, which makes memory-only
        invalidation narrower than tiered invalidation for such keys.

        Returns:
            Local keys first, then distributed-only keys, without duplicates
        """
        keys = await self._entry_store.keys_with_tag(tag)

        if self._distributed is not None:
            members = await self._distributed.members_of_set(self.tag_key(tag))
            seen = set(keys)
            keys.extend(sorted(member for member in members if member not in seen))

        log_stage(logger, Stage.TAG_RESOLVE, "Tag resolved", level="debug", tag=tag, keys=len(keys))
        return keys

    async def forget(self, tag: str) -> None:
        """Drop the tag's distributed set."""
        if self._distributed is not None:
            await self._distributed.delete(self.tag_key(tag))
