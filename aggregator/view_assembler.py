"""
View Assembler

Wraps the Row Projector with a connectivity precondition and static
column metadata, producing the ViewResult contract consumed by the
presentation layer.

FAIL-SAFE: if ANY collection in a view's declared set is disconnected,
the view is ``connected=False`` with no items. Data from a live source is
never mixed with the absence of another.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .collection_index import IndexCache
from .collection_store import Collection
from .join_spec import JoinSpec, ViewRow
from .row_projector import ProjectionStats, project_with_stats

logger = logging.getLogger("view_assembler")


# -----------------------------------------------------------------------------
# View Definition (Immutable)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ViewDefinition:
    """
    One dashboard view: its Join Specs plus static column metadata.

    ``required_collections`` is the DECLARED connectivity set. It is not
    inferred from the Join Specs, so which outages blank out which views
    stays an explicit decision per view.
    """
    name: str
    join_specs: Tuple[JoinSpec, ...]
    required_collections: Tuple[str, ...]
    sortable_columns: FrozenSet[int] = frozenset()
    searchable_columns: FrozenSet[int] = frozenset()
    columns: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.join_specs:
            raise ValueError(f"View '{self.name}' declares no Join Specs")
        widths = {len(spec.fields) for spec in self.join_specs}
        if len(widths) != 1:
            raise ValueError(f"View '{self.name}' mixes Join Specs of different widths: {sorted(widths)}")
        width = widths.pop()
        if self.columns and len(self.columns) != width:
            raise ValueError(f"View '{self.name}' names {len(self.columns)} columns for {width} fields")
        for index in self.sortable_columns | self.searchable_columns:
            if not 0 <= index < width:
                raise ValueError(f"View '{self.name}' column index {index} out of range")

    @property
    def width(self) -> int:
        return len(self.join_specs[0].fields)

    def referenced_collections(self) -> Tuple[str, ...]:
        """Every collection any Join Spec reads, in first-use order."""
        names: List[str] = []
        for spec in self.join_specs:
            for name in spec.collection_names():
                if name not in names:
                    names.append(name)
        return tuple(names)

    def snapshot_names(self) -> Tuple[str, ...]:
        names = list(self.required_collections)
        for name in self.referenced_collections():
            if name not in names:
                names.append(name)
        return tuple(names)


# -----------------------------------------------------------------------------
# View Result
# -----------------------------------------------------------------------------
@dataclass
class ViewResult:
    """Joined, display-ready output of one view."""
    connected: bool
    items: List[ViewRow] = field(default_factory=list)
    sortable_columns: FrozenSet[int] = frozenset()
    searchable_columns: FrozenSet[int] = frozenset()

    @classmethod
    def disconnected(cls, view: Optional[ViewDefinition] = None) -> "ViewResult":
        if view is None:
            return cls(connected=False, items=[])
        return cls(
            connected=False,
            items=[],
            sortable_columns=view.sortable_columns,
            searchable_columns=view.searchable_columns,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "items": [row.to_list() for row in self.items],
            "sortable_columns": sorted(self.sortable_columns),
            "searchable_columns": sorted(self.searchable_columns),
        }


def disconnected_sources(
    names: Tuple[str, ...],
    collections: Mapping[str, Collection],
) -> List[str]:
    """Names whose snapshot is missing or not connected."""
    return [
        name for name in names
        if name not in collections or not collections[name].connected
    ]


async def assemble_with_stats(
    view: ViewDefinition,
    collections: Mapping[str, Collection],
    *,
    timeout: Optional[float] = None,
) -> Tuple[ViewResult, List[ProjectionStats]]:
    """
    Assemble ``view`` from a captured snapshot mapping.

    Join Specs run in declared order over one shared index cache; their
    rows are concatenated. ``timeout`` (seconds) bounds the whole call and
    raises ProjectionCancelled when exceeded.
    """
    missing = disconnected_sources(view.required_collections, collections)
    if missing:
        logger.info(f"View '{view.name}' disconnected: {', '.join(missing)}")
        return ViewResult.disconnected(view), []

    deadline = None
    if timeout is not None:
        deadline = asyncio.get_running_loop().time() + timeout

    indexes = IndexCache(dict(collections))
    items: List[ViewRow] = []
    all_stats: List[ProjectionStats] = []
    for spec in view.join_specs:
        rows, stats = await project_with_stats(
            spec,
            collections,
            indexes=indexes,
            deadline=deadline,
        )
        items.extend(rows)
        all_stats.append(stats)

    return ViewResult(
        connected=True,
        items=items,
        sortable_columns=view.sortable_columns,
        searchable_columns=view.searchable_columns,
    ), all_stats


async def assemble(
    view: ViewDefinition,
    collections: Mapping[str, Collection],
    *,
    timeout: Optional[float] = None,
) -> ViewResult:
    result, _ = await assemble_with_stats(view, collections, timeout=timeout)
    return result
