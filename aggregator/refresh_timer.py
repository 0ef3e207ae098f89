"""
Refresh Timer

Decides when the periodic statistics snapshot must be recomputed, merging
several independent calendar schedules (earliest firing wins).

CRITICAL CONSTRAINTS:
- SINGLE OWNER: only the timer mutates ``last_run``
- ADVANCE ON SUCCESS ONLY: ``last_run`` moves to the completion timestamp
  of a successful snapshot, never on failure
- FORWARD PROGRESS: a schedule is never evaluated twice from the same
  ``last_run``
- NEVER NEGATIVE: late invocations or clock skew yield a zero wait
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .schedule import ScheduleSet

logger = logging.getLogger("refresh_timer")

# Delay before retrying a failed snapshot, so a persistent failure does not
# spin (last_run is not advanced on failure, so the computed wait is zero).
RETRY_DELAY_SECONDS = 60

SnapshotFn = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]
SleepFn = Callable[[float], Awaitable[None]]


def seconds_until_next_run(
    schedule_set: ScheduleSet,
    last_run: datetime,
    now: datetime,
) -> int:
    """
    Whole seconds from ``now`` until the earliest schedule fires after
    ``last_run``, floored at zero.

    ``now`` is truncated to the second so the wait never undershoots the
    next firing.
    """
    next_run = schedule_set.next_occurrence(last_run)
    wait = int((next_run - now.replace(microsecond=0)).total_seconds())
    return max(wait, 0)


class RefreshTimer:
    """
    Runs ``snapshot_fn`` whenever any schedule in the set fires.

    ``last_run`` starts at construction time: the first snapshot happens at
    the first firing after the timer is created, not immediately.
    """

    def __init__(
        self,
        schedule_set: ScheduleSet,
        snapshot_fn: SnapshotFn,
        clock: Optional[Clock] = None,
        sleep: Optional[SleepFn] = None,
        retry_delay: int = RETRY_DELAY_SECONDS,
    ):
        self._schedule_set = schedule_set
        self._snapshot_fn = snapshot_fn
        self._clock = clock or datetime.now
        self._sleep = sleep or asyncio.sleep
        self._retry_delay = retry_delay
        self._last_run: datetime = self._clock()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._run_count = 0
        self._failure_count = 0
        self._last_error: Optional[str] = None

    @property
    def last_run(self) -> datetime:
        return self._last_run

    @property
    def schedule_set(self) -> ScheduleSet:
        return self._schedule_set

    def next_run(self) -> datetime:
        return self._schedule_set.next_occurrence(self._last_run)

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> int:
        return seconds_until_next_run(
            self._schedule_set,
            self._last_run,
            now if now is not None else self._clock(),
        )

    async def run_once(self) -> Any:
        """
        Produce one snapshot and advance ``last_run`` to its completion time.

        Exceptions from the snapshot function propagate; ``last_run`` is
        left untouched in that case.
        """
        snapshot = await self._snapshot_fn()
        completed_at = self._clock()
        # Monotonic even if the wall clock stepped backwards mid-snapshot
        if completed_at > self._last_run:
            self._last_run = completed_at
        self._run_count += 1
        self._last_error = None
        logger.info(f"Snapshot completed at {self._last_run.isoformat()}, next run at {self.next_run().isoformat()}")
        return snapshot

    async def start(self) -> None:
        if self._running:
            logger.warning("Refresh timer already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._timer_loop())
        logger.info(f"Refresh timer started with schedules {self._schedule_set.to_list()}")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Refresh timer stopped")

    async def _timer_loop(self) -> None:
        while self._running:
            wait = self.seconds_until_next_run()
            logger.debug(f"Next snapshot in {wait}s")
            await self._sleep(wait)

            # Sleep is monotonic, schedules are wall-clock: an early wake
            # must not fire (and record) ahead of the boundary.
            if self._clock() < self.next_run():
                logger.debug("Woke before the next run, waiting again")
                continue

            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._failure_count += 1
                self._last_error = str(e)
                logger.error(f"Snapshot failed, retrying in {self._retry_delay}s: {e}")
                await self._sleep(self._retry_delay)

    @property
    def running(self) -> bool:
        return self._running

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "schedules": self._schedule_set.to_list(),
            "last_run": self._last_run.isoformat(),
            "next_run": self.next_run().isoformat(),
            "seconds_until_next_run": self.seconds_until_next_run(),
            "run_count": self._run_count,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
        }
