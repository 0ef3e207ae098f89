"""
Stats Snapshot Tests
"""

from datetime import datetime

import pytest

from aggregator.collection_store import Collection
from aggregator.errors import SourceUnavailableError
from aggregator.stats_snapshot import StatsGenerator
from tests.conftest import async_test


class TestStatsGenerator:

    @async_test
    async def test_counts(self, platform_store, fake_clock):
        generator = StatsGenerator(platform_store, clock=fake_clock)
        snapshot = await generator.generate()

        assert snapshot.to_dict() == {
            "timestamp": "2026-10-18T10:15:30",
            "organizations": 2,
            "spaces": 2,
            "users": 2,
            "apps": 3,
            "total_instances": 6,
            "running_instances": 4,
        }
        assert generator.latest() is snapshot

    @async_test
    async def test_disconnected_source_raises(self, platform_store):
        platform_store.publish("spaces", Collection.disconnected())
        generator = StatsGenerator(platform_store)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await generator.generate()

        assert exc_info.value.sources == ("spaces",)
        assert generator.latest() is None

    @async_test
    async def test_platform_without_apps(self, platform_store):
        platform_store.publish("applications", Collection.from_items([]))
        snapshot = await StatsGenerator(platform_store).generate()

        assert snapshot.apps == 0
        assert snapshot.total_instances == 0
        assert snapshot.running_instances == 0
        assert snapshot.organizations == 2

    @async_test
    async def test_non_numeric_instances_ignored(self, platform_store):
        platform_store.publish("applications", Collection.from_items([
            {"id": 1, "state": "STARTED", "instances": None},
            {"id": 2, "state": "STARTED", "instances": 2},
        ]))
        snapshot = await StatsGenerator(platform_store).generate()

        assert snapshot.apps == 2
        assert snapshot.total_instances == 2
        assert snapshot.running_instances == 2

    @async_test
    async def test_sink_receives_snapshot(self, platform_store):
        received = []

        async def sink(snapshot):
            received.append(snapshot)

        generator = StatsGenerator(platform_store, sink=sink)
        snapshot = await generator.generate()

        assert received == [snapshot]

    @async_test
    async def test_failing_sink_not_recorded(self, platform_store):
        async def sink(snapshot):
            raise ConnectionError("stats table unavailable")

        generator = StatsGenerator(platform_store, sink=sink)
        with pytest.raises(ConnectionError):
            await generator.generate()

        assert generator.history() == []

    @async_test
    async def test_history_bounded(self, platform_store, fake_clock):
        generator = StatsGenerator(platform_store, history_size=2, clock=fake_clock)
        for _ in range(3):
            await generator.generate()
            fake_clock.advance(3600)

        timestamps = [snapshot.timestamp for snapshot in generator.history()]
        assert timestamps == [
            datetime(2026, 10, 18, 11, 15, 30).isoformat(),
            datetime(2026, 10, 18, 12, 15, 30).isoformat(),
        ]
