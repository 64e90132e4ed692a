"""
Cache-Related Exceptions

Raised inside the cache's own infrastructure. None of these ever reach a
cache caller: the adapter and manager boundaries catch and log them.
"""

from tiercache.core.exceptions.base import TierCacheError


class CacheError(TierCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when the distributed store cannot be reached.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Socket or connect timeout
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a distributed store command fails for a reason other than
    connectivity (wrong type, protocol error, server-side limit).
    """
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a payload cannot be encoded or decoded.

    Common causes:
    - Value not representable as JSON
    - Corrupt or truncated payload in the distributed store
    - Codec mismatch between writers
    """
    pass
