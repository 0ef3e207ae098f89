"""
Aggregator Error Taxonomy

Source outages are NOT exceptions: a disconnected upstream is carried as
``connected=False`` on the Collection and propagates into every dependent
view as an empty, disconnected result.

Unresolved foreign keys are NOT exceptions either: rows whose references
cannot be resolved are skipped during projection.

The exceptions below cover the remaining failure modes.
"""

from typing import Optional


class AggregatorError(Exception):
    """Base class for all aggregator errors."""


class ScheduleParseError(AggregatorError, ValueError):
    """
    A calendar schedule expression is malformed.

    Raised at parse/validation time only, never while computing the next
    occurrence of an already-parsed schedule.
    """

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid schedule '{expression}': {reason}")


class CancellationError(AggregatorError):
    """Base class for cooperative cancellation of long-running work."""


class ProjectionCancelled(CancellationError):
    """A join/projection exceeded its caller-imposed deadline."""

    def __init__(self, join_label: Optional[str], rows_emitted: int):
        self.join_label = join_label
        self.rows_emitted = rows_emitted
        super().__init__(
            f"Projection '{join_label or 'unlabelled'}' cancelled after "
            f"{rows_emitted} rows: deadline exceeded"
        )


class SourceUnavailableError(AggregatorError):
    """
    A snapshot that needs every listed source could not be produced.

    Views never raise this; they report ``connected=False`` instead.
    """

    def __init__(self, sources):
        self.sources = tuple(sources)
        super().__init__(f"Sources not connected: {', '.join(self.sources)}")


class UnknownViewError(AggregatorError, KeyError):
    """The requested view name is not declared in the view catalog."""

    def __init__(self, view_name: str):
        self.view_name = view_name
        super().__init__(view_name)

    def __str__(self) -> str:
        return f"Unknown view: {self.view_name}"
