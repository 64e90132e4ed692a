"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.cache_factory import FakeClock, InMemoryDistributedStore  # noqa: E402

# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode via pyproject.toml; it owns the event loop

UNREACHABLE_REDIS_URL = "redis://127.0.0.1:6399/0"


# ============================================================================
# Mock Configuration Fixtures
# ============================================================================


@pytest.fixture
def mock_settings():
    """
    Real Settings isolated from the process environment and any .env file.

    Memory mode, single connect attempt, no reconnect throttling surprises.
    """
    from tiercache.core.config.settings import Settings

    return Settings(_env_file=None, REDIS_URL=None, REDIS_CONNECT_ATTEMPTS=1)


@pytest.fixture
def tiered_settings():
    """Settings pointing at a Redis URL nothing listens on."""
    from tiercache.core.config.settings import Settings

    return Settings(_env_file=None, REDIS_URL=UNREACHABLE_REDIS_URL, REDIS_CONNECT_ATTEMPTS=1)


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")


# ============================================================================
# Clock and Distributed Store Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Simulated epoch-seconds clock shared by both tiers."""
    return FakeClock()


@pytest.fixture
def distributed_store(clock):
    """In-memory distributed tier honoring the simulated clock."""
    return InMemoryDistributedStore(clock=clock)


@pytest.fixture
def mock_redis_client():
    """Generic mock distributed store for interaction testing."""
    client = AsyncMock()
    client.is_available = True
    client.try_connect = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set_with_expiry = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.members_of_set = AsyncMock(return_value=set())
    client.add_to_set = AsyncMock(return_value=True)
    client.expire_set = AsyncMock(return_value=True)
    client.flush_all = AsyncMock(return_value=True)
    client.health_check = AsyncMock(return_value={"status": "healthy"})
    return client


@pytest.fixture
def unreachable_redis_client(tiered_settings):
    """
    A real RedisClient whose connection probe always fails.

    ConnectionManager.connect is patched so no socket is ever opened.
    """
    from tiercache.core.exceptions import CacheConnectionError
    from tiercache.infrastructure.cache.redis_client import ConnectionManager, RedisClient

    refused = CacheConnectionError("Connection refused", details={"url": UNREACHABLE_REDIS_URL})
    with patch.object(ConnectionManager, "connect", AsyncMock(side_effect=refused)):
        yield RedisClient(UNREACHABLE_REDIS_URL, settings=tiered_settings)


# ============================================================================
# Async Infrastructure Fixtures
# ============================================================================


async def _started(manager):
    await manager.initialize(wait_for_distributed=True)
    return manager


@pytest.fixture
async def memory_cache(clock):
    """Memory-only CacheManager."""
    from tiercache.infrastructure.cache.cache_manager import CacheManager

    manager = await _started(CacheManager(clock=clock))
    yield manager
    await manager.shutdown()


@pytest.fixture
async def tiered_cache(clock, distributed_store):
    """CacheManager backed by the in-memory distributed fake."""
    from tiercache.infrastructure.cache.cache_manager import CacheManager

    manager = await _started(CacheManager(distributed=distributed_store, clock=clock))
    yield manager
    await manager.shutdown()


@pytest.fixture
async def degraded_cache(clock, unreachable_redis_client):
    """CacheManager whose Redis tier is configured but unreachable."""
    from tiercache.infrastructure.cache.cache_manager import CacheManager

    manager = await _started(CacheManager(distributed=unreachable_redis_client, clock=clock))
    yield manager
    await manager.shutdown()


@pytest.fixture(params=["memory", "tiered", "unreachable"])
async def cache_manager(request, clock, distributed_store, tiered_settings):
    """
    CacheManager in each supported topology.

    Every behavioural test using this fixture runs three times: memory only,
    tiered with a healthy distributed tier, and tiered with Redis down.
    """
    from tiercache.core.exceptions import CacheConnectionError
    from tiercache.infrastructure.cache.cache_manager import CacheManager
    from tiercache.infrastructure.cache.redis_client import ConnectionManager, RedisClient

    if request.param == "memory":
        manager = await _started(CacheManager(clock=clock))
        yield manager
        await manager.shutdown()
    elif request.param == "tiered":
        manager = await _started(CacheManager(distributed=distributed_store, clock=clock))
        yield manager
        await manager.shutdown()
    else:
        refused = CacheConnectionError("Connection refused")
        with patch.object(ConnectionManager, "connect", AsyncMock(side_effect=refused)):
            client = RedisClient(UNREACHABLE_REDIS_URL, settings=tiered_settings)
            manager = await _started(CacheManager(distributed=client, clock=clock))
            yield manager
            await manager.shutdown()


@pytest.fixture
def mock_cache_manager():
    """
    Mock CacheManager for isolated strategy testing.

    Provides async mock methods for the public operations.
    """
    from tiercache.infrastructure.cache.cache_manager import CacheManager

    cache = AsyncMock(spec=CacheManager)
    cache.get = AsyncMock(return_value=None)
    cache.get_entry = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=None)
    cache.delete = AsyncMock(return_value=None)
    cache.memoize = AsyncMock(return_value=None)
    cache.invalidate_by_tag = AsyncMock(return_value=0)
    cache.now_millis = MagicMock(return_value=0)
    cache.get_stats = MagicMock(return_value={"memory_size": 0, "distributed_available": False})
    cache.health_check = AsyncMock(return_value={"status": "healthy"})
    return cache
