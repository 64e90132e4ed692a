"""
Cache Backend Protocols

This module defines the protocols the cache manager depends on, enabling
dependency injection and testability.

Architectural Decision: Protocol-based abstraction
- The manager depends on DistributedStore, not on redis-py
- Tests substitute in-memory or failing implementations
- Codecs can be swapped without touching the manager
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DistributedStore(Protocol):
    """
    Protocol for the optional network-backed tier.

    Every method is failure-isolated: implementations swallow connection and
    protocol errors and return a neutral default (None, False, 0, empty set)
    instead of raising.

    Implementations:
    - RedisClient: Production Redis-backed store
    - InMemoryDistributedStore (tests): dict-backed fake
    """

    @property
    def is_available(self) -> bool:
        """True when the last probe or operation reached the backend."""
        ...

    async def try_connect(self) -> bool:
        """
        Probe the backend (PING).

        Returns:
            bool: True if reachable
        """
        ...

    async def disconnect(self) -> None:
        """Release connections and background tasks."""
        ...

    async def get(self, key: str) -> bytes | None:
        """GET key. None when absent or unavailable."""
        ...

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """SETEX key ttl value. True if written."""
        ...

    async def delete(self, *keys: str) -> int:
        """DEL key... Number of keys removed."""
        ...

    async def members_of_set(self, set_key: str) -> set[str]:
        """SMEMBERS set_key."""
        ...

    async def add_to_set(self, set_key: str, member: str) -> bool:
        """SADD set_key member. True if the command succeeded."""
        ...

    async def expire_set(self, set_key: str, ttl_seconds: int) -> bool:
        """EXPIRE set_key ttl. True if a timeout was set."""
        ...

    async def flush_all(self) -> bool:
        """FLUSHALL. True if the command succeeded."""
        ...


@runtime_checkable
class PayloadCodec(Protocol):
    """
    Protocol for payload transforms applied to distributed-tier values.

    compress() runs after serialization on write, decompress() before
    deserialization on read. decompress(compress(b)) must equal b.
    """

    name: str

    def compress(self, data: bytes) -> bytes:
        ...

    def decompress(self, data: bytes) -> bytes:
        ...
