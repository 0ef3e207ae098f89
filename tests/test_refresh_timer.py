"""
Refresh Timer Tests

TEST FOCUS:
- Wait computation for single and merged schedules
- Waits never negative
- last_run advances on success only
- Timer loop with a controllable clock and sleep
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from aggregator.refresh_timer import RefreshTimer, seconds_until_next_run
from aggregator.schedule import parse_schedules
from tests.conftest import async_test

HOURLY = parse_schedules(["0 * * * *"])
OFFICE_HOURS = ["0 1 * * *", "0 12-17 * * 1-5"]


class TestSecondsUntilNextRun:

    def test_top_of_hour_from_wall_clock(self):
        now = datetime.now()
        expected_run = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        expected = int((expected_run - now.replace(microsecond=0)).total_seconds())

        assert seconds_until_next_run(HOURLY, now, now) == expected
        assert 1 <= expected <= 3600

    def test_top_of_hour_fixed(self, fake_clock):
        now = fake_clock()
        assert seconds_until_next_run(HOURLY, now, now) == 2670

    def test_merged_schedules_take_minimum(self):
        # Friday 12:30
        now = datetime(2026, 10, 16, 12, 30, 0)
        merged = seconds_until_next_run(parse_schedules(OFFICE_HOURS), now, now)
        individual = [
            seconds_until_next_run(parse_schedules([text]), now, now)
            for text in OFFICE_HOURS
        ]

        assert merged == min(individual)
        assert merged == 1800

    def test_merged_schedules_over_weekend(self, fake_clock):
        # Sunday 10:15:30 -> Monday 01:00
        now = fake_clock()
        wait = seconds_until_next_run(parse_schedules(OFFICE_HOURS), now, now)
        assert wait == int((datetime(2026, 10, 19, 1, 0) - now).total_seconds())

    def test_late_invocation_floors_at_zero(self):
        last_run = datetime(2026, 10, 18, 10, 0, 0)
        now = datetime(2026, 10, 18, 12, 0, 0)
        assert seconds_until_next_run(HOURLY, last_run, now) == 0

    def test_clock_skew_floors_at_zero(self):
        # last_run recorded ahead of the current wall clock
        last_run = datetime(2026, 10, 18, 10, 59, 59)
        now = datetime(2026, 10, 18, 12, 30, 0)
        assert seconds_until_next_run(HOURLY, last_run, now) == 0

    def test_now_truncated_to_second(self):
        moment = datetime(2026, 10, 18, 10, 59, 59, 900000)
        assert seconds_until_next_run(HOURLY, moment, moment) == 1


class TestRunOnce:

    @async_test
    async def test_success_advances_last_run(self, fake_clock):
        async def snapshot():
            fake_clock.advance(5)
            return "snapshot"

        timer = RefreshTimer(HOURLY, snapshot, clock=fake_clock)
        assert timer.last_run == datetime(2026, 10, 18, 10, 15, 30)

        fake_clock.advance(2670 - 5)
        result = await timer.run_once()

        assert result == "snapshot"
        assert timer.last_run == datetime(2026, 10, 18, 11, 0, 0)
        assert timer.next_run() == datetime(2026, 10, 18, 12, 0, 0)

    @async_test
    async def test_failure_keeps_last_run(self, fake_clock):
        async def snapshot():
            raise RuntimeError("database unavailable")

        timer = RefreshTimer(HOURLY, snapshot, clock=fake_clock)
        before = timer.last_run
        fake_clock.advance(3600)

        with pytest.raises(RuntimeError):
            await timer.run_once()

        assert timer.last_run == before
        assert timer.seconds_until_next_run() == 0

    @async_test
    async def test_next_run_strictly_increases(self, fake_clock):
        async def snapshot():
            return None

        timer = RefreshTimer(HOURLY, snapshot, clock=fake_clock)
        seen = [timer.next_run()]
        for _ in range(3):
            fake_clock.now = seen[-1]
            await timer.run_once()
            seen.append(timer.next_run())

        assert seen == sorted(set(seen))
        assert len(seen) == 4

    @async_test
    async def test_backwards_clock_does_not_rewind(self, fake_clock):
        async def snapshot():
            fake_clock.advance(-3600)

        timer = RefreshTimer(HOURLY, snapshot, clock=fake_clock)
        before = timer.last_run
        await timer.run_once()

        assert timer.last_run == before


class TestTimerLoop:

    def _controlled_sleep(self, fake_clock, waits, done):
        async def sleep(seconds):
            waits.append(seconds)
            if done.is_set():
                # Park the loop until stop() cancels it
                await asyncio.Event().wait()
            fake_clock.advance(seconds)
            await asyncio.sleep(0)
        return sleep

    @async_test
    async def test_fires_on_schedule(self, fake_clock):
        waits = []
        runs = []
        done = asyncio.Event()

        async def snapshot():
            runs.append(fake_clock())
            if len(runs) == 2:
                done.set()

        timer = RefreshTimer(
            HOURLY,
            snapshot,
            clock=fake_clock,
            sleep=self._controlled_sleep(fake_clock, waits, done),
        )
        await timer.start()
        await asyncio.wait_for(done.wait(), timeout=5)
        await timer.stop()

        assert waits[:2] == [2670, 3600]
        assert runs == [datetime(2026, 10, 18, 11, 0), datetime(2026, 10, 18, 12, 0)]
        assert timer.last_run == datetime(2026, 10, 18, 12, 0)
        assert timer.running is False

    @async_test
    async def test_failure_retried_after_delay(self, fake_clock):
        waits = []
        calls = []
        done = asyncio.Event()

        async def snapshot():
            calls.append(fake_clock())
            if len(calls) == 1:
                raise RuntimeError("snapshot store unavailable")
            done.set()

        timer = RefreshTimer(
            HOURLY,
            snapshot,
            clock=fake_clock,
            sleep=self._controlled_sleep(fake_clock, waits, done),
            retry_delay=60,
        )
        await timer.start()
        await asyncio.wait_for(done.wait(), timeout=5)
        await timer.stop()

        # Missed run: zero wait after the retry delay
        assert waits[:3] == [2670, 60, 0]
        assert calls == [datetime(2026, 10, 18, 11, 0), datetime(2026, 10, 18, 11, 1)]
        assert timer.last_run == datetime(2026, 10, 18, 11, 1)

        status = timer.get_status()
        assert status["failure_count"] == 1
        assert status["run_count"] == 1
        assert status["last_error"] is None

    @async_test
    async def test_early_wake_waits_for_boundary(self, fake_clock):
        waits = []
        runs = []
        done = asyncio.Event()

        async def early_sleep(seconds):
            waits.append(seconds)
            if done.is_set():
                await asyncio.Event().wait()
            # First wake lands one second short of the boundary
            fake_clock.advance(seconds - 1 if len(waits) == 1 else seconds)
            await asyncio.sleep(0)

        async def snapshot():
            runs.append(fake_clock())
            if len(runs) == 2:
                done.set()

        timer = RefreshTimer(HOURLY, snapshot, clock=fake_clock, sleep=early_sleep)
        await timer.start()
        await asyncio.wait_for(done.wait(), timeout=5)
        await timer.stop()

        assert waits[:3] == [2670, 1, 3600]
        # One run per firing, none before 11:00
        assert runs == [datetime(2026, 10, 18, 11, 0), datetime(2026, 10, 18, 12, 0)]

    @async_test
    async def test_start_twice_is_noop(self, fake_clock):
        done = asyncio.Event()

        async def snapshot():
            return None

        timer = RefreshTimer(
            HOURLY,
            snapshot,
            clock=fake_clock,
            sleep=self._controlled_sleep(fake_clock, [], done),
        )
        done.set()
        await timer.start()
        first_task = timer._task
        await timer.start()

        assert timer._task is first_task
        await timer.stop()
        assert timer._task is None
