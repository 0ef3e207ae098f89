"""
Row Projector

Generic hash-join of one primary collection against its reference
collections, driven entirely by a JoinSpec.

CRITICAL CONSTRAINTS:
- NO PARTIAL ROWS: a candidate with any unresolved key is skipped
- NOT AN ERROR: unresolved keys are routine under eventual consistency
  (a role may reference a user GUID that has not propagated yet)
- ORDER PRESERVED: rows follow the primary collection's iteration order
- COOPERATIVE: control is yielded at least once per primary record
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from .collection_index import IndexCache
from .collection_store import Collection, Record
from .errors import ProjectionCancelled
from .join_spec import JoinSpec, ViewRow

logger = logging.getLogger("row_projector")

YieldFn = Callable[[], Awaitable[None]]


async def _default_yield() -> None:
    await asyncio.sleep(0)


@dataclass
class ProjectionStats:
    """Counters for one projection pass."""
    label: Optional[str]
    scanned: int = 0
    emitted: int = 0
    unresolved: int = 0
    cancelled: bool = False


def _resolve_row(
    join_spec: JoinSpec,
    primary_record: Record,
    indexes: IndexCache,
) -> Optional[ViewRow]:
    """Resolve every lookup for one primary record, or None if any fails."""
    attached: Dict[str, Record] = {join_spec.primary_role: primary_record}

    for lookup in join_spec.lookups:
        key = attached[lookup.source_role].get(lookup.key_field)
        if key is None:
            return None
        target = indexes.get(lookup.collection, lookup.target_field).get(key)
        if target is None:
            return None
        attached[lookup.role] = target

    values = tuple(
        join_spec.label if output.is_label else attached[output.role].get(output.field)
        for output in join_spec.fields
    )
    return ViewRow(values=values, metadata=attached)


async def project_with_stats(
    join_spec: JoinSpec,
    collections: Mapping[str, Collection],
    *,
    indexes: Optional[IndexCache] = None,
    yield_control: Optional[YieldFn] = None,
    deadline: Optional[float] = None,
    allow_partial: bool = False,
) -> Tuple[List[ViewRow], ProjectionStats]:
    """
    Project ``join_spec`` over ``collections``.

    Parameters:
        collections: snapshot mapping captured once by the caller
        indexes: index cache shared by the Join Specs of one pass
        yield_control: awaited once per primary record (default sleep(0))
        deadline: event-loop time after which the pass is cancelled
        allow_partial: return the rows emitted so far instead of raising

    Raises ProjectionCancelled when the deadline passes, unless
    ``allow_partial`` is set.
    """
    if indexes is None:
        indexes = IndexCache(dict(collections))
    if yield_control is None:
        yield_control = _default_yield

    loop = asyncio.get_running_loop()
    stats = ProjectionStats(label=join_spec.label)
    rows: List[ViewRow] = []
    primary = collections.get(join_spec.primary)
    if primary is None:
        primary = Collection.disconnected()

    for primary_record in primary.items:
        await yield_control()

        if deadline is not None and loop.time() >= deadline:
            stats.cancelled = True
            logger.warning(
                f"Projection '{join_spec.label}' hit its deadline after "
                f"{stats.scanned}/{len(primary)} records"
            )
            if allow_partial:
                return rows, stats
            raise ProjectionCancelled(join_spec.label, stats.emitted)

        stats.scanned += 1
        row = _resolve_row(join_spec, primary_record, indexes)
        if row is None:
            stats.unresolved += 1
            continue

        rows.append(row)
        stats.emitted += 1

    if stats.unresolved:
        logger.debug(
            f"Projection '{join_spec.label}': {stats.unresolved} of {stats.scanned} "
            f"records skipped with unresolved references"
        )
    return rows, stats


async def project(
    join_spec: JoinSpec,
    collections: Mapping[str, Collection],
    **kwargs,
) -> List[ViewRow]:
    """Project ``join_spec`` and return only the rows."""
    rows, _ = await project_with_stats(join_spec, collections, **kwargs)
    return rows
