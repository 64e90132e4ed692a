"""
Interfaces Module

Protocols the cache manager depends on.
"""

from tiercache.core.interfaces.cache import DistributedStore, PayloadCodec

__all__ = ["DistributedStore", "PayloadCodec"]
