"""Weekly scrape timer that can be reconfigured at runtime."""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from dateutil.relativedelta import relativedelta

from admonitor.config import SETTINGS_POLL_INTERVAL
from admonitor.services.settings import ScheduleSettings
from admonitor.utils.logger import get_logger

logger = get_logger("scheduler")

ScheduledJob = Callable[[ScheduleSettings], Awaitable[object]]


def next_run_after(now: datetime, day: int, hour: int) -> datetime:
    """Next slot strictly after ``now`` on ``day`` (0=Sunday) at ``hour``:00."""
    # relativedelta weekdays count from Monday
    candidate = now + relativedelta(weekday=(day - 1) % 7, hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += relativedelta(weeks=1)
    return candidate


class ScrapeScheduler:
    """Owns at most one timer task at any time."""

    def __init__(self, job: ScheduledJob, clock: Callable[[], datetime] = datetime.now):
        self.job = job
        self.clock = clock
        self.settings: Optional[ScheduleSettings] = None
        self.next_run: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None
        # Held across cancel and restart of _task
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def reconfigure(self, settings: ScheduleSettings):
        """Replace the current timer with one for ``settings`` (or none when disabled)."""
        async with self._lock:
            await self._cancel()
            self.settings = settings

            if not settings.enabled:
                logger.info("schedule_disabled")
                return

            delay = self._plan(settings)
            self._task = asyncio.create_task(self._loop(settings, delay))
            logger.info("schedule_enabled", slot=settings.label, next_run=self.next_run.isoformat())

    async def sync(self, settings: ScheduleSettings) -> bool:
        """Reconfigure only when ``settings`` differ from the active ones."""
        if settings == self.settings:
            return False
        await self.reconfigure(settings)
        return True

    async def stop(self):
        async with self._lock:
            await self._cancel()

    async def _cancel(self):
        task, self._task = self._task, None
        self.next_run = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _plan(self, settings: ScheduleSettings) -> float:
        now = self.clock()
        self.next_run = next_run_after(now, settings.day, settings.hour)
        return (self.next_run - now).total_seconds()

    async def _loop(self, settings: ScheduleSettings, delay: float):
        while True:
            await asyncio.sleep(delay)
            logger.info("scheduled_run_started", slot=settings.label)
            try:
                await self.job(settings)
            except Exception as e:
                # A failed run must not kill the timer; next week's slot still fires
                logger.error("scheduled_run_failed", error=str(e))
            delay = self._plan(settings)


async def watch_settings(
    scheduler: ScrapeScheduler,
    load: Callable[[], ScheduleSettings],
    interval: float = SETTINGS_POLL_INTERVAL,
):
    """Apply stored schedule changes to a running scheduler, checking every ``interval`` seconds."""
    while True:
        try:
            if await scheduler.sync(load()):
                logger.info("schedule_reloaded", enabled=scheduler.settings.enabled, slot=scheduler.settings.label)
        except Exception as e:
            logger.error("settings_reload_failed", error=str(e))
        await asyncio.sleep(interval)
