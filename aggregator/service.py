"""
Aggregator Service

Hosts the cooperative tasks of one dashboard process on a single event
loop: one poller per source collection, the stats Refresh Timer, and the
views served on demand.

The concrete fetch coroutines (control-plane REST client, message-bus
listener, metrics poller) are supplied by the caller.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from .collection_store import CollectionPoller, CollectionStore, FetchFn
from .config import AggregatorConfig
from .dashboard_views import DashboardViews, configure_dashboard_views
from .refresh_timer import RefreshTimer
from .stats_snapshot import SnapshotSink, StatsGenerator
from .view_assembler import ViewDefinition

logger = logging.getLogger("aggregator_service")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Process-wide logging setup; library modules never call this."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


class AggregatorService:
    """
    Wires config -> store -> pollers -> views and stats timer.

    Construction parses the schedules again from the validated config, so
    an invalid schedule fails here, before any task is started.
    """

    def __init__(
        self,
        config: AggregatorConfig,
        fetchers: Mapping[str, FetchFn],
        store: Optional[CollectionStore] = None,
        catalog: Optional[Mapping[str, ViewDefinition]] = None,
        stats_sink: Optional[SnapshotSink] = None,
    ):
        self._config = config
        self._store = store if store is not None else CollectionStore()
        self._pollers: List[CollectionPoller] = [
            CollectionPoller(name, fetch, self._store, interval=config.poll_interval_seconds)
            for name, fetch in fetchers.items()
        ]
        self._views = configure_dashboard_views(
            self._store,
            catalog=catalog,
            timeout=config.projection_timeout_seconds,
        )
        self._stats = StatsGenerator(
            self._store,
            sink=stats_sink,
            history_size=config.stats_history_size,
        )
        self._timer = RefreshTimer(
            config.schedule_set(),
            self._stats.generate,
            retry_delay=config.stats_retry_delay_seconds,
        )
        self._started = False

    @property
    def store(self) -> CollectionStore:
        return self._store

    @property
    def views(self) -> DashboardViews:
        return self._views

    @property
    def stats(self) -> StatsGenerator:
        return self._stats

    @property
    def timer(self) -> RefreshTimer:
        return self._timer

    async def start(self) -> None:
        if self._started:
            logger.warning("Aggregator service already started")
            return

        self._started = True
        for poller in self._pollers:
            await poller.start()
        await self._timer.start()
        logger.info(f"Aggregator service started with {len(self._pollers)} pollers")

    async def stop(self) -> None:
        await self._timer.stop()
        for poller in self._pollers:
            await poller.stop()
        self._started = False
        logger.info("Aggregator service stopped")

    def get_status(self) -> Dict[str, Any]:
        latest = self._stats.latest()
        return {
            "started": self._started,
            "collections": self._store.get_status(),
            "pollers": [poller.get_status() for poller in self._pollers],
            "timer": self._timer.get_status(),
            "latest_stats": latest.to_dict() if latest else None,
            "views": self._views.view_names(),
        }
