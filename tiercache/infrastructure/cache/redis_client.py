"""
Redis Distributed Store Adapter

Architecture:
    RedisClient (Public API, failure-isolated)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error translation)
        └── HealthMonitor (Health checks and metrics)

Failure Isolation:
    Every public operation catches connection and protocol errors and returns
    a neutral default instead of raising. The cache manager therefore runs
    unchanged, and silently, whether Redis is up, down, flapping, or never
    configured.

Availability:
    - try_connect() probes with PING, retried with tenacity backoff
    - A connection/timeout error during any command flips the client to
      unavailable (transient network loss)
    - While unavailable, operations short-circuit and schedule a background
      reconnect at most once per REDIS_RECONNECT_INTERVAL
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from urllib.parse import urlsplit

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from tiercache.core.config.constants import (
    CONNECT_RETRY_BASE_DELAY,
    CONNECT_RETRY_MAX_DELAY,
    Stage,
)
from tiercache.core.config.settings import Settings, get_settings
from tiercache.core.exceptions import CacheConnectionError, CacheError, CacheKeyError
from tiercache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")


def _safe_url(url: str) -> str:
    """Strip credentials from a Redis URL for logging."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{host}{port}{parts.path}"


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Responsibility: Connection establishment, pooling, and cleanup.

    Pool Configuration (from settings):
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket timeout / connect timeout: bound every command
    - Health check interval: stale connections are re-validated
    """

    def __init__(self, url: str, settings: Settings):
        self._url = url
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis and verify it with PING.

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        redis_settings = self._settings.redis

        try:
            if self._pool is None:
                self._pool = ConnectionPool.from_url(
                    self._url,
                    max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                    socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                    health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                    decode_responses=False,  # Payloads are codec bytes
                )
                self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            log_stage(
                logger,
                Stage.REDIS_CONNECT,
                "Redis connected successfully",
                url=_safe_url(self._url),
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
            return self._client

        except (ConnectionError, TimeoutError, OSError) as e:
            self._is_connected = False
            raise CacheConnectionError.from_exception(
                e, message=f"Failed to connect to Redis: {e}", url=_safe_url(self._url)
            )
        except RedisError as e:
            # AUTH / protocol failures during the probe
            self._is_connected = False
            raise CacheConnectionError.from_exception(
                e, message=f"Redis rejected connection: {e}", url=_safe_url(self._url)
            )

    async def disconnect(self) -> None:
        """
        Close Redis client and pool.

        Cleanup Steps:
        1. Close Redis client (releases resources)
        2. Disconnect pool (closes all connections)
        3. Mark as disconnected
        """
        try:
            if self._client:
                await self._client.aclose()
            if self._pool:
                await self._pool.disconnect()
        except (RedisError, OSError) as e:
            logger.warning("Error while closing Redis pool", error=str(e))
        finally:
            self._client = None
            self._pool = None
            self._is_connected = False

        log_stage(logger, Stage.REDIS_DISCONNECT, "Redis disconnected")

    def mark_disconnected(self) -> None:
        """Record a transient loss; the pool is kept for the next probe."""
        self._is_connected = False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Executes Redis commands with error translation
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - ConnectionError / TimeoutError -> CacheConnectionError
    - Any other RedisError -> CacheKeyError
    The public client decides what each means for availability.
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def _run(self, command: str, call: Callable[[], Awaitable[T]], **context) -> T:
        try:
            return await call()
        except (ConnectionError, TimeoutError) as e:
            raise CacheConnectionError.from_exception(
                e, message=f"Redis {command} failed: {e}", command=command, **context
            )
        except RedisError as e:
            raise CacheKeyError.from_exception(
                e, message=f"Redis {command} failed: {e}", command=command, **context
            )

    async def ping(self) -> bool:
        return await self._run("PING", self._redis.ping)

    async def get(self, key: str) -> bytes | None:
        return await self._run("GET", lambda: self._redis.get(key), key=key)

    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> bool:
        result = await self._run("SETEX", lambda: self._redis.setex(key, ttl_seconds, value), key=key)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        return await self._run("DEL", lambda: self._redis.delete(*keys), keys=list(keys))

    async def smembers(self, set_key: str) -> set[str]:
        members = await self._run("SMEMBERS", lambda: self._redis.smembers(set_key), key=set_key)
        return {m.decode("utf-8") if isinstance(m, bytes) else str(m) for m in members}

    async def sadd(self, set_key: str, member: str) -> int:
        return await self._run("SADD", lambda: self._redis.sadd(set_key, member), key=set_key)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self._run("EXPIRE", lambda: self._redis.expire(key, ttl_seconds), key=key))

    async def flushall(self) -> bool:
        return bool(await self._run("FLUSHALL", self._redis.flushall))


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size and utilization
    """

    def __init__(self, connection_manager: ConnectionManager, url: str):
        self._conn_mgr = connection_manager
        self._url = url

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        Returns:
            Dict with health status and metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "url": _safe_url(self._url),
            "pool_size": 0,
            "pool_in_use": 0,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except (RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool:
            health["pool_size"] = pool.max_connections
            in_use = getattr(pool, "_in_use_connections", None)
            if in_use is not None:
                health["pool_in_use"] = len(in_use)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# Failure-isolated adapter consumed by the cache manager
# =============================================================================


class RedisClient:
    """
    Failure-isolated Redis adapter for the distributed tier.

    Usage:
        client = RedisClient("redis://localhost:6379/0")
        client.connect_in_background()      # lazy, non-blocking

        await client.set_with_expiry("k", b"payload", 60)
        raw = await client.get("k")         # None on miss OR outage

        await client.disconnect()

    Contract:
        No public coroutine raises for infrastructure failures. Callers see
        None / False / 0 / empty set and can check ``is_available``.
    """

    def __init__(self, url: str, settings: Settings | None = None):
        self._url = url
        self._settings = settings or get_settings()
        redis_settings = self._settings.redis

        self._conn_mgr = ConnectionManager(url, self._settings)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, url)

        self._connect_attempts = redis_settings.REDIS_CONNECT_ATTEMPTS
        self._reconnect_interval = redis_settings.REDIS_RECONNECT_INTERVAL
        self._available = False
        self._last_attempt: float | None = None
        self._connect_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def is_configured(self) -> bool:
        return bool(self._url)

    @property
    def url(self) -> str:
        return _safe_url(self._url)

    async def try_connect(self) -> bool:
        """
        Probe Redis with PING, retrying with exponential backoff and jitter.

        Never raises.

        Returns:
            True if Redis is reachable
        """
        self._last_attempt = time.monotonic()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential_jitter(
                    initial=CONNECT_RETRY_BASE_DELAY,
                    max=CONNECT_RETRY_MAX_DELAY,
                    jitter=CONNECT_RETRY_BASE_DELAY,
                ),
                retry=retry_if_exception_type(CacheConnectionError),
                reraise=True,
            ):
                with attempt:
                    client = await self._conn_mgr.connect()
        except CacheConnectionError as e:
            self._available = False
            log_stage(
                logger,
                Stage.REDIS_UNAVAILABLE,
                "Redis unavailable, continuing with memory tier only",
                level="warning",
                url=self.url,
                attempts=self._connect_attempts,
                error=e.message,
            )
            return False

        self._executor = OperationExecutor(client)
        self._available = True
        return True

    def connect_in_background(self) -> asyncio.Task:
        """
        Start a connection probe without waiting for it.

        Must be called from a running event loop. A probe already in flight
        is reused.
        """
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self.try_connect())
        return self._connect_task

    def _maybe_reconnect(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            return
        if (
            self._last_attempt is not None
            and time.monotonic() - self._last_attempt < self._reconnect_interval
        ):
            return
        self.connect_in_background()

    async def disconnect(self) -> None:
        """Cancel any pending probe and close the pool."""
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._connect_task = None
        self._available = False
        self._executor = None
        await self._conn_mgr.disconnect()

    async def _guarded(
        self,
        command: str,
        operation: Callable[[OperationExecutor], Awaitable[T]],
        default: T,
        **context,
    ) -> T:
        """
        Run one command with failure isolation.

        - Unavailable: return default, maybe schedule a reconnect
        - Connection/timeout error: flip to unavailable, return default
        - Other command error: log, return default
        """
        if not self._available or self._executor is None:
            self._maybe_reconnect()
            return default

        try:
            return await operation(self._executor)
        except CacheConnectionError as e:
            self._available = False
            self._conn_mgr.mark_disconnected()
            self._last_attempt = time.monotonic()
            log_stage(
                logger,
                Stage.REDIS_UNAVAILABLE,
                "Redis connection lost, falling back to memory tier",
                level="warning",
                command=command,
                error=e.message,
                **context,
            )
        except CacheError as e:
            log_stage(
                logger,
                Stage.REDIS_OPERATION,
                "Redis command failed",
                level="warning",
                command=command,
                error=e.message,
                **context,
            )
        return default

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        """GET key."""
        return await self._guarded("GET", lambda ex: ex.get(key), None, key=key)

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """SETEX key ttl_seconds value."""
        return await self._guarded(
            "SETEX", lambda ex: ex.setex(key, ttl_seconds, value), False, key=key
        )

    async def delete(self, *keys: str) -> int:
        """DEL key..."""
        if not keys:
            return 0
        return await self._guarded("DEL", lambda ex: ex.delete(*keys), 0, keys=len(keys))

    async def members_of_set(self, set_key: str) -> set[str]:
        """SMEMBERS set_key."""
        return await self._guarded("SMEMBERS", lambda ex: ex.smembers(set_key), set(), key=set_key)

    async def add_to_set(self, set_key: str, member: str) -> bool:
        """SADD set_key member. True once the member is present."""

        async def _sadd(ex: OperationExecutor) -> bool:
            await ex.sadd(set_key, member)
            return True

        return await self._guarded("SADD", _sadd, False, key=set_key)

    async def expire_set(self, set_key: str, ttl_seconds: int) -> bool:
        """EXPIRE set_key ttl_seconds."""
        return await self._guarded("EXPIRE", lambda ex: ex.expire(set_key, ttl_seconds), False, key=set_key)

    async def flush_all(self) -> bool:
        """FLUSHALL."""
        return await self._guarded("FLUSHALL", lambda ex: ex.flushall(), False)

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        health = await self._health_monitor.health_check()
        health["available"] = self._available
        return health
