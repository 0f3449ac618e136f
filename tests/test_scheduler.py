import asyncio
from datetime import datetime

import pytest

from admonitor.scheduler import ScrapeScheduler, next_run_after, watch_settings
from admonitor.services.settings import ScheduleSettings, load_schedule_settings, save_schedule_settings

WEDNESDAY_10AM = datetime(2024, 1, 10, 10, 0)


@pytest.mark.parametrize(
    "day, hour, expected",
    [
        (1, 6, datetime(2024, 1, 15, 6, 0)),  # Monday
        (3, 12, datetime(2024, 1, 10, 12, 0)),  # later today
        (3, 9, datetime(2024, 1, 17, 9, 0)),  # earlier today rolls to next week
        (3, 10, datetime(2024, 1, 17, 10, 0)),  # exactly now is not "after"
        (0, 0, datetime(2024, 1, 14, 0, 0)),  # Sunday
        (6, 23, datetime(2024, 1, 13, 23, 0)),  # Saturday
    ],
)
def test_next_run_after(day, hour, expected):
    assert next_run_after(WEDNESDAY_10AM, day, hour) == expected


def test_settings_validate_ranges():
    with pytest.raises(ValueError):
        ScheduleSettings(day=7)
    with pytest.raises(ValueError):
        ScheduleSettings(hour=24)
    assert ScheduleSettings(day=1, hour=6).label == "Monday at 06:00"


async def _noop(settings):
    return None


@pytest.mark.asyncio
async def test_reconfigure_never_leaves_two_timers():
    scheduler = ScrapeScheduler(_noop, clock=lambda: WEDNESDAY_10AM)

    await scheduler.reconfigure(ScheduleSettings(enabled=True, day=1, hour=6))
    first = scheduler._task
    await scheduler.reconfigure(ScheduleSettings(enabled=True, day=5, hour=8))
    second = scheduler._task

    assert first is not second
    assert first.cancelled()
    assert scheduler.is_running
    assert scheduler.next_run == datetime(2024, 1, 12, 8, 0)

    assert _live_timers() == [second]

    await scheduler.stop()
    assert not scheduler.is_running
    assert scheduler.next_run is None


@pytest.mark.asyncio
async def test_disabled_settings_stop_the_timer():
    scheduler = ScrapeScheduler(_noop, clock=lambda: WEDNESDAY_10AM)
    await scheduler.reconfigure(ScheduleSettings(enabled=True))
    assert scheduler.is_running

    await scheduler.reconfigure(ScheduleSettings(enabled=False))

    assert not scheduler.is_running
    assert scheduler.next_run is None


@pytest.mark.asyncio
async def test_job_runs_at_slot_and_survives_failures():
    calls = []
    fired = asyncio.Event()

    async def job(settings):
        calls.append(settings.auto_analyze)
        if len(calls) >= 2:
            fired.set()
        raise RuntimeError("upstream down")

    # Clock parked just before Wednesday noon so the slot is due almost immediately
    scheduler = ScrapeScheduler(job, clock=lambda: datetime(2024, 1, 10, 11, 59, 59, 995000))
    await scheduler.reconfigure(ScheduleSettings(enabled=True, day=3, hour=12, auto_analyze=True))

    await asyncio.wait_for(fired.wait(), timeout=2)
    assert scheduler.is_running
    await scheduler.stop()

    assert calls[:2] == [True, True]


def _live_timers():
    return [t for t in asyncio.all_tasks() if t.get_coro().__qualname__.startswith("ScrapeScheduler._loop")]


@pytest.mark.asyncio
async def test_concurrent_reconfigures_leave_one_timer():
    scheduler = ScrapeScheduler(_noop, clock=lambda: WEDNESDAY_10AM)
    await scheduler.reconfigure(ScheduleSettings(enabled=True, day=1))

    await asyncio.gather(
        scheduler.reconfigure(ScheduleSettings(enabled=True, day=2)),
        scheduler.reconfigure(ScheduleSettings(enabled=True, day=3)),
    )

    assert _live_timers() == [scheduler._task]
    assert scheduler.settings.day == 3
    assert scheduler.next_run == datetime(2024, 1, 17, 6, 0)
    await scheduler.stop()


@pytest.mark.asyncio
async def test_sync_ignores_unchanged_settings():
    scheduler = ScrapeScheduler(_noop, clock=lambda: WEDNESDAY_10AM)
    settings = ScheduleSettings(enabled=True, day=1, hour=6)
    assert await scheduler.sync(settings)
    task = scheduler._task

    assert not await scheduler.sync(ScheduleSettings(enabled=True, day=1, hour=6))
    assert scheduler._task is task

    assert await scheduler.sync(ScheduleSettings(enabled=True, day=1, hour=7))
    assert scheduler._task is not task
    await scheduler.stop()


@pytest.mark.asyncio
async def test_saved_settings_reach_a_running_scheduler(session_factory):
    def load():
        with session_factory() as db:
            return load_schedule_settings(db)

    with session_factory() as db:
        save_schedule_settings(db, ScheduleSettings(enabled=True, day=1, hour=6))
        db.commit()

    scheduler = ScrapeScheduler(_noop, clock=lambda: WEDNESDAY_10AM)
    watcher = asyncio.create_task(watch_settings(scheduler, load, interval=0.01))

    async def next_run_becomes(expected):
        while scheduler.next_run != expected:
            await asyncio.sleep(0.01)

    try:
        await asyncio.wait_for(next_run_becomes(datetime(2024, 1, 15, 6, 0)), timeout=2)

        with session_factory() as db:
            save_schedule_settings(db, ScheduleSettings(enabled=True, day=5, hour=8))
            db.commit()

        await asyncio.wait_for(next_run_becomes(datetime(2024, 1, 12, 8, 0)), timeout=2)
        assert len(_live_timers()) == 1
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
        await scheduler.stop()

    assert not scheduler.is_running
