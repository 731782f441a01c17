"""
Daily log retention sweep.

Nothing is armed at import time; the entry point calls
``schedule_daily_cleanup`` once and cancels the returned task on shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from utils.monitoring.logger import LogWriter

DAY_SECONDS = 24 * 60 * 60


def seconds_until_next_run(now: datetime, hour: int = 3, minute: int = 0) -> float:
    """Seconds from ``now`` until the next HH:MM (tomorrow if today's has passed)."""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def _daily_cleanup_loop(
    writer: LogWriter,
    clock: Callable[[], datetime],
    hour: int,
    interval: float,
) -> None:
    await asyncio.sleep(seconds_until_next_run(clock(), hour))
    while True:
        try:
            writer.daily_cleanup()
        except Exception as e:
            writer.error("Daily cleanup run failed", {"error": str(e)})
        await asyncio.sleep(interval)


def schedule_daily_cleanup(
    writer: LogWriter,
    clock: Callable[[], datetime] | None = None,
    hour: int = 3,
    interval: float = DAY_SECONDS,
) -> asyncio.Task:
    """
    Arm the retention sweep: first run at the next ``hour``:00, then every ``interval``.

    Must be called from a running event loop. Cancel the returned task to disarm.

    Usage:
        task = schedule_daily_cleanup(log_writer)
        ...
        task.cancel()
    """
    clock = clock or writer.now
    task = asyncio.create_task(
        _daily_cleanup_loop(writer, clock, hour, interval), name="daily-log-cleanup"
    )
    writer.debug(
        "Daily log cleanup scheduled",
        {"hour": hour, "first_run_in_s": round(seconds_until_next_run(clock(), hour))},
    )
    return task
