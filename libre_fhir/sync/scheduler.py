"""Periodic sync scheduler.

Fires on wall-clock minute boundaries like a ``*/N * * * *`` cron entry and
never lets two ticks overlap: a tick that comes due while the previous one
is still running is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Set

from libre_fhir.metrics import sync_tick_skipped_total
from libre_fhir.models.sync import SessionContext, TickResult
from libre_fhir.sync.driver import SyncDriver

logger = logging.getLogger(__name__)


def next_run_time(now: datetime, interval_minutes: int) -> datetime:
    """Return the next minute boundary after *now* whose minute is a multiple of the interval.

    Like cron, the multiples restart every hour, so with a 7 minute interval
    10:57 is followed by 11:00.
    """
    base = now.replace(second=0, microsecond=0)
    minute = base.minute + (interval_minutes - base.minute % interval_minutes)
    if minute >= 60:
        return base.replace(minute=0) + timedelta(hours=1)
    return base.replace(minute=minute)


def seconds_until_next_run(now: datetime, interval_minutes: int) -> float:
    return (next_run_time(now, interval_minutes) - now).total_seconds()


class SyncScheduler:
    """Run `SyncDriver` ticks on a fixed cadence with a single-flight guard.

    Usage::

        scheduler = SyncScheduler(driver, interval_minutes=settings.link_up_time_interval)
        await scheduler.run_forever()
    """

    def __init__(
        self,
        driver: SyncDriver,
        interval_minutes: int = 1,
        session: Optional[SessionContext] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.driver = driver
        self.interval_minutes = interval_minutes
        self.session = session or driver.new_session()
        self.last_result: Optional[TickResult] = None
        self._now = now
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def trigger(self) -> Optional[TickResult]:
        """
        Run one tick unless another is in flight.

        Returns:
            The tick result, or None if the tick was skipped.
        """
        if self._lock.locked():
            logger.warning("Previous sync tick still running; skipping this one")
            sync_tick_skipped_total.inc()
            return None
        async with self._lock:
            self.session, self.last_result = await self.driver.run_tick(self.session)
            return self.last_result

    def _spawn(self) -> None:
        task = asyncio.create_task(self.trigger())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Sync tick failed: %s", exc, exc_info=exc)

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        """Fire ticks on schedule until *stop* is set or the task is cancelled."""
        stop = stop or asyncio.Event()
        logger.info("Starting schedule: */%d * * * *", self.interval_minutes)
        try:
            while not stop.is_set():
                delay = seconds_until_next_run(self._now(), self.interval_minutes)
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    self._spawn()
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
