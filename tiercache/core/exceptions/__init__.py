"""
Exception Module

Structured exception hierarchy for tiercache.

Module Structure:
-----------------
- **base.py**: TierCacheError base class + ConfigurationError
- **cache.py**: Cache infrastructure exceptions (connection, command, serialization)

Usage:
------
```python
from tiercache.core.exceptions import CacheConnectionError, CacheSerializationError
```
"""

from tiercache.core.exceptions.base import ConfigurationError, TierCacheError
from tiercache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)

__all__ = [
    # Base
    "TierCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
]
