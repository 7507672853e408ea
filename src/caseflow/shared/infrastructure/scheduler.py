"""
Cache Cleanup Scheduler
=======================

Wrapper around APScheduler running the periodic ``StaleCache.cleanup``
sweep, which bounds memory independently of access patterns.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from caseflow.shared.infrastructure.cache import StaleCache
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

JOB_ID = "cache_cleanup"


class CacheCleanupScheduler:
    """
    Manages the lifecycle of the scheduler and its cleanup job.
    """

    def __init__(self, cache: StaleCache, interval_seconds: int = 300):
        self._cache = cache
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self.last_removed = 0

    def run_once(self) -> int:
        """Sweep the cache now."""
        self.last_removed = self._cache.cleanup()
        return self.last_removed

    async def start(self) -> None:
        """Start the scheduler (no-op when the interval is 0)."""
        if self._running:
            logger.warning("Cache cleanup scheduler already running")
            return
        if self.interval_seconds <= 0:
            logger.info("Cache cleanup scheduler disabled")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            name="Cache Cleanup Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Cache cleanup scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Cache cleanup scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
