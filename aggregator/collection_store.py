"""
Collection Snapshots, Store & Pollers

Raw entity collections arrive from independent pollers, each on its own
cadence. This module holds them.

CRITICAL CONSTRAINTS:
- IMMUTABLE: a Collection and its Records are never mutated after creation
- REPLACE, NEVER MUTATE: a poller publishes a brand-new Collection value
- EXPLICIT DISCONNECT: an unreachable source is ``connected=False`` with
  no items, never an empty-but-connected collection

A join pass captures ``store.snapshot(...)`` once and keeps those references
for its whole duration. A concurrent publish only rebinds the store's
entry, so the pass keeps seeing the old snapshot in its entirety.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import (
    Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple,
    runtime_checkable,
)

logger = logging.getLogger("collection_store")

Record = Mapping[str, Any]

DEFAULT_POLL_INTERVAL_SECONDS = 30


def make_record(data: Mapping[str, Any]) -> Record:
    """Freeze a raw mapping into a read-only Record."""
    if isinstance(data, MappingProxyType):
        return data
    return MappingProxyType(dict(data))


# -----------------------------------------------------------------------------
# Collection (Immutable)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Collection:
    """
    One wholesale snapshot of a single upstream source.

    ``items`` is a tuple of read-only Records in source order.
    """
    connected: bool
    items: Tuple[Record, ...] = ()
    fetched_at: Optional[str] = None  # ISO format

    def __post_init__(self):
        if not self.connected and self.items:
            raise ValueError("A disconnected collection cannot carry items")

    @classmethod
    def from_items(
        cls,
        items: Iterable[Mapping[str, Any]],
        fetched_at: Optional[str] = None,
    ) -> "Collection":
        """Build a connected collection, freezing every item."""
        return cls(
            connected=True,
            items=tuple(make_record(item) for item in items),
            fetched_at=fetched_at or datetime.utcnow().isoformat(),
        )

    @classmethod
    def disconnected(cls) -> "Collection":
        """A source that is currently unreachable."""
        return cls(connected=False, items=())

    def __len__(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "items": [dict(item) for item in self.items],
        }


@runtime_checkable
class CollectionSource(Protocol):
    """Ingestion contract exposed by every poller."""

    def get_collection(self) -> Collection:
        ...


# -----------------------------------------------------------------------------
# Collection Store
# -----------------------------------------------------------------------------
class CollectionStore:
    """
    Named, atomically-replaced collection snapshots.

    Names that were never published read as disconnected.
    """

    def __init__(self, initial: Optional[Mapping[str, Collection]] = None):
        self._collections: Dict[str, Collection] = dict(initial or {})
        self._publish_counts: Dict[str, int] = {}

    def publish(self, name: str, collection: Collection) -> None:
        """Replace the snapshot for ``name`` with a new Collection."""
        if not isinstance(collection, Collection):
            raise TypeError(f"Expected Collection for '{name}', got {type(collection).__name__}")
        self._collections[name] = collection
        self._publish_counts[name] = self._publish_counts.get(name, 0) + 1
        logger.debug(
            f"Published '{name}': connected={collection.connected}, items={len(collection)}"
        )

    def get_collection(self, name: str) -> Collection:
        collection = self._collections.get(name)
        return collection if collection is not None else Collection.disconnected()

    def snapshot(self, names: Iterable[str]) -> Dict[str, Collection]:
        """Capture the current snapshot of every named collection at once."""
        return {name: self.get_collection(name) for name in names}

    def source(self, name: str) -> CollectionSource:
        return StoreSource(self, name)

    def names(self) -> List[str]:
        return sorted(self._collections)

    def get_status(self) -> Dict[str, Any]:
        return {
            name: {
                "connected": collection.connected,
                "items": len(collection),
                "fetched_at": collection.fetched_at,
                "publish_count": self._publish_counts.get(name, 0),
            }
            for name, collection in sorted(self._collections.items())
        }


class StoreSource:
    """Binds one store entry to the ``get_collection()`` contract."""

    def __init__(self, store: CollectionStore, name: str):
        self._store = store
        self.name = name

    def get_collection(self) -> Collection:
        return self._store.get_collection(self.name)


# -----------------------------------------------------------------------------
# Collection Poller
# -----------------------------------------------------------------------------
FetchFn = Callable[[], Awaitable[Iterable[Mapping[str, Any]]]]


class CollectionPoller:
    """
    Periodically refreshes one named collection in the store.

    The fetch coroutine is supplied by the caller (control-plane REST
    client, message-bus listener, metrics poller). A fetch that raises
    publishes a DISCONNECTED collection: dependent views blank out rather
    than keep showing data that is no longer known to be current.
    """

    def __init__(
        self,
        name: str,
        fetch: FetchFn,
        store: CollectionStore,
        interval: int = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.name = name
        self._fetch = fetch
        self._store = store
        self._interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_poll_timestamp: Optional[str] = None
        self._poll_count = 0
        self._failure_count = 0

    async def poll_once(self) -> Collection:
        """Fetch once and publish the result."""
        try:
            items = await self._fetch()
            collection = Collection.from_items(items)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failure_count += 1
            logger.error(f"Poll of '{self.name}' failed: {e}")
            collection = Collection.disconnected()

        self._store.publish(self.name, collection)
        self._last_poll_timestamp = datetime.utcnow().isoformat()
        self._poll_count += 1
        return collection

    async def start(self) -> None:
        if self._running:
            logger.warning(f"Poller '{self.name}' already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Poller '{self.name}' started (interval={self._interval}s)")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"Poller '{self.name}' stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "running": self._running,
            "poll_interval_seconds": self._interval,
            "last_poll_timestamp": self._last_poll_timestamp,
            "poll_count": self._poll_count,
            "failure_count": self._failure_count,
        }
