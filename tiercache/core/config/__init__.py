"""
Configuration Module

Type-safe, environment-based configuration for the two-tier cache.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Library-wide constants, enums, and key formats

Usage:
------
```python
from tiercache.core.config import get_settings
from tiercache.core.config.constants import CacheMode, Stage

settings = get_settings()
if settings.CACHE_MODE == CacheMode.TIERED:
    redis_url = settings.redis.REDIS_URL
```

Environment Variables:
---------------------
```bash
# Distributed tier (absent = memory-only mode)
REDIS_URL=redis://localhost:6379/0

# Cache behaviour
CACHE_DEFAULT_TTL=3600
CACHE_CLEANUP_INTERVAL=300
CACHE_REFRESH_THRESHOLD=0.8

# Logging
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from tiercache.core.config.constants import (
    CLEANUP_INTERVAL_SECONDS,
    DEFAULT_TTL_SECONDS,
    REFRESH_THRESHOLD,
    TAG_KEY_PREFIX,
    CacheMode,
    CacheTier,
    Stage,
)
from tiercache.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CacheMode",
    "CacheTier",
    # Defaults
    "DEFAULT_TTL_SECONDS",
    "CLEANUP_INTERVAL_SECONDS",
    "REFRESH_THRESHOLD",
    "TAG_KEY_PREFIX",
]
