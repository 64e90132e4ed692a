"""
Cleanup Scheduler

Periodically purges expired entries from the entry store so memory is
reclaimed for keys that are never read again. Reads already evict lazily;
this is the eager half.

The distributed tier needs no sweep: Redis expires keys on its own.
"""

import asyncio
import time
from collections.abc import Callable

from tiercache.core.config.constants import CLEANUP_INTERVAL_SECONDS, Stage
from tiercache.core.logging.logger import get_logger, log_stage
from tiercache.infrastructure.cache.memory_store import EntryStore

logger = get_logger(__name__)


class CleanupScheduler:
    """
    Background sweep of the entry store.

    Loop:
        wait on the stop event with a timeout of ``interval_seconds``;
        on timeout, sweep; on stop, exit

    Usage:
        scheduler = CleanupScheduler(store, interval_seconds=300)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        entry_store: EntryStore,
        interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            entry_store: Store to sweep
            interval_seconds: Time between sweeps
            clock: Epoch-seconds clock used to judge expiry
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._entry_store = entry_store
        self._interval = interval_seconds
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._sweeps = 0
        self._purged = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> None:
        """Start the sweep loop. No-op if already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        log_stage(logger, Stage.CLEANUP_START, "Cleanup scheduler started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        log_stage(logger, Stage.CLEANUP_STOP, "Cleanup scheduler stopped", sweeps=self._sweeps, purged=self._purged)

    async def sweep(self) -> int:
        """
        Purge expired entries once.

        Returns:
            Number of entries evicted
        """
        now_millis = int(self._clock() * 1000)
        purged = await self._entry_store.purge_expired(now_millis)
        self._sweeps += 1
        self._purged += purged
        if purged:
            log_stage(logger, Stage.CLEANUP_SWEEP, "Expired entries purged", purged=purged)
        return purged

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.sweep()
            except Exception as e:
                # Keep the loop alive; the next interval retries
                logger.error(
                    "Cleanup sweep failed",
                    stage=Stage.CLEANUP_SWEEP.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    def get_stats(self) -> dict[str, int | float | bool]:
        return {
            "running": self.is_running,
            "interval_seconds": self._interval,
            "sweeps": self._sweeps,
            "purged": self._purged,
        }
