"""
Dashboard Views

READ-ONLY entry point for the presentation layer.

HARD CONSTRAINTS:
- Read-only: views never mutate collections
- One snapshot per call: every Join Spec of a view sees the same snapshots
- Disconnected beats stale: an outage renders as an empty, disconnected view
- Cancelled means no result: a view that exceeds its deadline returns None,
  never a partially-populated table
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from .collection_store import CollectionStore
from .errors import ProjectionCancelled, UnknownViewError
from .view_assembler import ViewDefinition, ViewResult, assemble
from .view_catalog import build_catalog

logger = logging.getLogger("dashboard_views")

DEFAULT_PROJECTION_TIMEOUT_SECONDS = 10.0


class DashboardViews:
    """
    Serves assembled views from the current collection snapshots.

    Each call captures ``store.snapshot(...)`` once; a poller publishing
    mid-call does not affect that call's output.
    """

    def __init__(
        self,
        store: CollectionStore,
        catalog: Optional[Mapping[str, ViewDefinition]] = None,
        timeout: Optional[float] = DEFAULT_PROJECTION_TIMEOUT_SECONDS,
    ):
        self._store = store
        self._catalog: Dict[str, ViewDefinition] = dict(catalog or build_catalog())
        self._timeout = timeout

    @property
    def store(self) -> CollectionStore:
        return self._store

    def view_names(self) -> List[str]:
        return list(self._catalog)

    def get_definition(self, view_name: str) -> ViewDefinition:
        view = self._catalog.get(view_name)
        if view is None:
            raise UnknownViewError(view_name)
        return view

    async def get_view(self, view_name: str) -> Optional[ViewResult]:
        """
        Assemble ``view_name`` from the current snapshots.

        Returns None if the projection was cancelled by its deadline.
        Raises UnknownViewError for undeclared views.
        """
        view = self.get_definition(view_name)
        collections = self._store.snapshot(view.snapshot_names())

        try:
            return await assemble(view, collections, timeout=self._timeout)
        except ProjectionCancelled as e:
            logger.warning(f"View '{view_name}' produced no result: {e}")
            return None

    def get_column_metadata(self, view_name: str) -> Dict[str, Any]:
        """Static per-view column names and sortable/searchable indices."""
        view = self.get_definition(view_name)
        return {
            "view": view.name,
            "columns": list(view.columns),
            "sortable_columns": sorted(view.sortable_columns),
            "searchable_columns": sorted(view.searchable_columns),
        }


# -----------------------------------------------------------------------------
# Module-Level Functions
# -----------------------------------------------------------------------------

# Singleton instance
_dashboard_views: Optional[DashboardViews] = None


def configure_dashboard_views(
    store: CollectionStore,
    catalog: Optional[Mapping[str, ViewDefinition]] = None,
    timeout: Optional[float] = DEFAULT_PROJECTION_TIMEOUT_SECONDS,
) -> DashboardViews:
    """Bind the singleton to the service's collection store."""
    global _dashboard_views
    _dashboard_views = DashboardViews(store, catalog=catalog, timeout=timeout)
    return _dashboard_views


def get_dashboard_views() -> DashboardViews:
    """Get the dashboard views singleton."""
    global _dashboard_views
    if _dashboard_views is None:
        _dashboard_views = DashboardViews(CollectionStore())
    return _dashboard_views


async def get_view(view_name: str) -> Optional[Dict[str, Any]]:
    """Get one view in transport form, or None when cancelled."""
    result = await get_dashboard_views().get_view(view_name)
    return result.to_dict() if result is not None else None
