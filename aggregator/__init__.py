"""
Live-State Aggregator

Aggregation and projection engine for a platform operations dashboard.

- Collections: wholesale-replaced snapshots from independent pollers,
  each tagged with a connectivity flag
- Collection Index: identifier -> record lookup, rebuilt per join pass
- Row Projector: generic hash-join driven by declarative Join Specs
  * Unresolved references drop the row (eventual consistency, not an error)
  * Yields control once per primary record
  * Deadline-bounded; a cancelled projection returns no result
- View Assembler: connectivity precondition + static column metadata
  * ANY disconnected source -> {connected: false, items: []}
- Schedule Set: 5/6-field cron expressions and @macro aliases
- Refresh Timer: earliest-of-all-schedules wait, advanced only after a
  successful stats snapshot
"""

__version__ = "1.0.0"

from .collection_index import build_index
from .collection_store import Collection, CollectionStore, make_record
from .errors import (
    AggregatorError,
    CancellationError,
    ProjectionCancelled,
    ScheduleParseError,
    SourceUnavailableError,
    UnknownViewError,
)
from .join_spec import LABEL, JoinSpec, KeyLookup, OutputField, ViewRow, column
from .refresh_timer import RefreshTimer, seconds_until_next_run
from .row_projector import project
from .schedule import ScheduleSet, next_occurrence, parse_expression, parse_schedules
from .view_assembler import ViewDefinition, ViewResult, assemble

__all__ = [
    "__version__",
    "AggregatorError",
    "CancellationError",
    "Collection",
    "CollectionStore",
    "JoinSpec",
    "KeyLookup",
    "LABEL",
    "OutputField",
    "ProjectionCancelled",
    "RefreshTimer",
    "ScheduleParseError",
    "ScheduleSet",
    "SourceUnavailableError",
    "UnknownViewError",
    "ViewDefinition",
    "ViewResult",
    "ViewRow",
    "assemble",
    "build_index",
    "column",
    "make_record",
    "next_occurrence",
    "parse_expression",
    "parse_schedules",
    "project",
    "seconds_until_next_run",
]
