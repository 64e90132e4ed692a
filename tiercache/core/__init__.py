"""
Core Module

Foundational components: configuration, logging, exceptions, and protocols.
"""

from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    ConfigurationError,
    TierCacheError,
)
from .logging import get_logger, log_stage, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "log_stage",
    "TierCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
]
