"""
Statistics Snapshots

The snapshot path triggered by the Refresh Timer: counts of the main
entity collections at one instant. Durable persistence is left to the
optional sink; the generator keeps a bounded in-memory history.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from .collection_store import CollectionStore
from .errors import SourceUnavailableError
from .view_assembler import disconnected_sources

logger = logging.getLogger("stats_snapshot")

STATS_COLLECTIONS = ("organizations", "spaces", "users_uaa", "applications")
RUNNING_STATE = "STARTED"
DEFAULT_HISTORY_SIZE = 24


@dataclass(frozen=True)
class StatsSnapshot:
    """Immutable point-in-time platform statistics."""
    timestamp: str  # ISO format
    organizations: int
    spaces: int
    users: int
    apps: int
    total_instances: int
    running_instances: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


SnapshotSink = Callable[[StatsSnapshot], Awaitable[None]]


def _instances(application) -> int:
    value = application.get("instances")
    return value if isinstance(value, int) else 0


class StatsGenerator:
    """
    Builds StatsSnapshots from the current collection snapshots.

    Every source must be connected: counting a disconnected source as zero
    would record a misleading drop.
    """

    def __init__(
        self,
        store: CollectionStore,
        sink: Optional[SnapshotSink] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._sink = sink
        self._history: Deque[StatsSnapshot] = deque(maxlen=history_size)
        self._clock = clock or datetime.now

    async def generate(self) -> StatsSnapshot:
        collections = self._store.snapshot(STATS_COLLECTIONS)
        missing = disconnected_sources(STATS_COLLECTIONS, collections)
        if missing:
            logger.warning(f"Stats snapshot skipped, sources disconnected: {', '.join(missing)}")
            raise SourceUnavailableError(missing)

        applications = collections["applications"].items
        snapshot = StatsSnapshot(
            timestamp=self._clock().isoformat(),
            organizations=len(collections["organizations"]),
            spaces=len(collections["spaces"]),
            users=len(collections["users_uaa"]),
            apps=len(applications),
            total_instances=sum(_instances(app) for app in applications),
            running_instances=sum(
                _instances(app) for app in applications
                if app.get("state") == RUNNING_STATE
            ),
        )

        if self._sink is not None:
            await self._sink(snapshot)
        self._history.append(snapshot)
        logger.info(
            f"Stats snapshot: {snapshot.organizations} orgs, {snapshot.spaces} spaces, "
            f"{snapshot.users} users, {snapshot.apps} apps"
        )
        return snapshot

    def latest(self) -> Optional[StatsSnapshot]:
        return self._history[-1] if self._history else None

    def history(self) -> List[StatsSnapshot]:
        return list(self._history)
