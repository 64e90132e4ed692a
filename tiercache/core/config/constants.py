"""
System Constants and Enumerations

This module defines library-wide constants and enumerations used across
the two-tier cache.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for log stages and tiers
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache operation stages for structured logging.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}
    - PREFIX: C (cache manager), R (redis adapter), T (tag index),
      S (cleanup scheduler), H (strategy helpers)
    - DESCRIPTIVE_NAME: Clear, uppercase description with underscores

    Examples:
        log_stage(logger, Stage.CACHE_HIT, "Cache hit", cache_key="user:42")
        # -> {"event": "Cache hit", "stage": "C.1_CACHE_HIT", ...}
    """

    # Cache manager
    CACHE_INIT = "C.0_CACHE_INIT"
    CACHE_HIT = "C.1_CACHE_HIT"
    CACHE_MISS = "C.2_CACHE_MISS"
    CACHE_SET = "C.3_CACHE_SET"
    CACHE_DELETE = "C.4_CACHE_DELETE"
    CACHE_INVALIDATE = "C.5_CACHE_INVALIDATE_TAG"
    CACHE_CLEAR = "C.6_CACHE_CLEAR"
    CACHE_MEMOIZE = "C.7_CACHE_MEMOIZE"
    CACHE_SHUTDOWN = "C.9_CACHE_SHUTDOWN"

    # Distributed store adapter
    REDIS_CONNECT = "R.1_REDIS_CONNECT"
    REDIS_OPERATION = "R.2_REDIS_OPERATION"
    REDIS_UNAVAILABLE = "R.3_REDIS_UNAVAILABLE"
    REDIS_DISCONNECT = "R.4_REDIS_DISCONNECT"

    # Tag index
    TAG_REGISTER = "T.1_TAG_REGISTER"
    TAG_RESOLVE = "T.2_TAG_RESOLVE"

    # Cleanup scheduler
    CLEANUP_START = "S.1_CLEANUP_START"
    CLEANUP_SWEEP = "S.2_CLEANUP_SWEEP"
    CLEANUP_STOP = "S.3_CLEANUP_STOP"

    # Strategy helpers
    BACKGROUND_REFRESH = "H.1_BACKGROUND_REFRESH"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache storage tiers.

    MEMORY: In-process entry store (always available)
    DISTRIBUTED: Redis-backed store shared across processes (optional)
    """

    MEMORY = "memory"
    DISTRIBUTED = "distributed"


class CacheMode(str, Enum):
    """
    Backend selection resolved once at startup.

    MEMORY: Entry store only
    TIERED: Entry store + distributed store
    """

    MEMORY = "memory"
    TIERED = "tiered"


# ============================================================================
# Defaults
# ============================================================================

DEFAULT_TTL_SECONDS = 3600  # 1 hour
CLEANUP_INTERVAL_SECONDS = 300  # 5 minutes
REFRESH_THRESHOLD = 0.8  # Refresh once 80% of the TTL has elapsed

# Connection retry (tenacity)
CONNECT_ATTEMPTS = 3
CONNECT_RETRY_BASE_DELAY = 0.1  # seconds
CONNECT_RETRY_MAX_DELAY = 2.0  # seconds
RECONNECT_INTERVAL_SECONDS = 30.0

# ============================================================================
# Key Formats
# ============================================================================

TAG_KEY_PREFIX = "tag:"
USER_KEY_FORMAT = "user:{user_id}:{data_type}"
USER_TAG_FORMAT = "user:{user_id}"
DATA_TYPE_TAG_FORMAT = "dataType:{data_type}"

# Log truncation for cache keys
LOG_KEY_MAX_LENGTH = 64
