"""
Calendar Schedules

Cron-style schedule parsing and next-occurrence computation.

Syntax (5 fields, or 6 with a leading seconds field):

    [second] minute hour day-of-month month day-of-week

Each field accepts ``*``, exact values, ``a-b`` ranges, ``/n`` steps and
comma-separated lists of any of these. Months and weekdays also accept
three-letter names; weekday ``7`` is Sunday. Macro aliases
(``@hourly``, ``@daily``, ...) are replaced by their 5-field text before
parsing.

Day-of-month and day-of-week are OR-combined when both are restricted
(neither starts with ``*``), as in conventional cron.

CRITICAL CONSTRAINTS:
- FAIL AT PARSE TIME: malformed or never-firing expressions raise
  ScheduleParseError when parsed, never during computation
- STRICTLY AFTER: next_occurrence never returns ``after`` itself
- TIMEZONE-PRESERVING: results carry the tzinfo of ``after``
"""

import bisect
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, Iterator, Optional, Tuple, Union

from .errors import ScheduleParseError

# -----------------------------------------------------------------------------
# Macro Aliases (LOCKED)
# -----------------------------------------------------------------------------
MACROS: Dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

MONTH_NAMES = {
    name: number for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
WEEKDAY_NAMES = {
    name: number for number, name in enumerate(
        ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
    )
}

# Longest possible month lengths (February includes the leap day)
MAX_DAYS_IN_MONTH = {
    1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30,
    7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31,
}

# Feb 29 can be 8 years apart (e.g. 2096 -> 2104)
MAX_SEARCH_YEARS = 9


@dataclass(frozen=True)
class _FieldRange:
    name: str
    low: int
    high: int
    names: Optional[Dict[str, int]] = None


SECOND = _FieldRange("second", 0, 59)
MINUTE = _FieldRange("minute", 0, 59)
HOUR = _FieldRange("hour", 0, 23)
DAY_OF_MONTH = _FieldRange("day-of-month", 1, 31)
MONTH = _FieldRange("month", 1, 12, MONTH_NAMES)
DAY_OF_WEEK = _FieldRange("day-of-week", 0, 7, WEEKDAY_NAMES)


def _parse_value(text: str, field_range: _FieldRange, expression: str) -> int:
    if text.isascii() and text.isdigit():
        value = int(text)
    elif field_range.names and text.lower() in field_range.names:
        value = field_range.names[text.lower()]
    else:
        raise ScheduleParseError(expression, f"invalid {field_range.name} value '{text}'")

    if not field_range.low <= value <= field_range.high:
        raise ScheduleParseError(
            expression,
            f"{field_range.name} value {value} outside {field_range.low}-{field_range.high}",
        )
    return value


def _parse_field(text: str, field_range: _FieldRange, expression: str) -> FrozenSet[int]:
    """Expand one field into the set of values it matches."""
    values = set()
    for part in text.split(","):
        if not part:
            raise ScheduleParseError(expression, f"empty list item in {field_range.name} '{text}'")

        base, step = part, 1
        if "/" in part:
            base, step_text = part.split("/", 1)
            if not (step_text.isascii() and step_text.isdigit()) or int(step_text) == 0:
                raise ScheduleParseError(expression, f"invalid step '{step_text}' in {field_range.name}")
            step = int(step_text)

        if base == "*":
            start, end = field_range.low, field_range.high
        elif "-" in base:
            start_text, end_text = base.split("-", 1)
            start = _parse_value(start_text, field_range, expression)
            end = _parse_value(end_text, field_range, expression)
            if start > end:
                raise ScheduleParseError(expression, f"descending range '{base}' in {field_range.name}")
        else:
            start = _parse_value(base, field_range, expression)
            # "5/15" means every 15 starting at 5
            end = field_range.high if "/" in part else start

        values.update(range(start, end + 1, step))

    return frozenset(values)


def _next_in(sorted_values: Tuple[int, ...], current: int) -> Optional[int]:
    """Smallest value >= current, or None."""
    position = bisect.bisect_left(sorted_values, current)
    if position < len(sorted_values):
        return sorted_values[position]
    return None


def _start_of_next_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0) + timedelta(days=1)


def _start_of_next_month(moment: datetime) -> datetime:
    if moment.month == 12:
        return moment.replace(year=moment.year + 1, month=1, day=1, hour=0, minute=0, second=0)
    return moment.replace(month=moment.month + 1, day=1, hour=0, minute=0, second=0)


# -----------------------------------------------------------------------------
# Cron Expression (Immutable)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class CronExpression:
    """One parsed calendar schedule."""
    expression: str  # As configured, e.g. "@daily"
    canonical: str  # After macro resolution, e.g. "0 0 * * *"
    seconds: Tuple[int, ...]
    minutes: Tuple[int, ...]
    hours: Tuple[int, ...]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]  # 0 = Sunday
    day_of_month_restricted: bool
    day_of_week_restricted: bool
    has_seconds: bool = False

    def _day_matches(self, moment: datetime) -> bool:
        cron_weekday = (moment.weekday() + 1) % 7
        in_dom = moment.day in self.days_of_month
        in_dow = cron_weekday in self.days_of_week
        if self.day_of_month_restricted and self.day_of_week_restricted:
            return in_dom or in_dow
        if self.day_of_month_restricted:
            return in_dom
        if self.day_of_week_restricted:
            return in_dow
        return True

    def next_occurrence(self, after: datetime) -> datetime:
        """Earliest moment strictly after ``after`` matching every field."""
        if self.has_seconds:
            moment = after.replace(microsecond=0) + timedelta(seconds=1)
        else:
            moment = after.replace(second=0, microsecond=0) + timedelta(minutes=1)

        last_year = moment.year + MAX_SEARCH_YEARS
        while moment.year <= last_year:
            if moment.month not in self.months:
                moment = _start_of_next_month(moment)
                continue

            if not self._day_matches(moment):
                moment = _start_of_next_day(moment)
                continue

            if moment.hour not in self.hours:
                hour = _next_in(self.hours, moment.hour)
                if hour is None:
                    moment = _start_of_next_day(moment)
                else:
                    moment = moment.replace(hour=hour, minute=0, second=0)
                continue

            if moment.minute not in self.minutes:
                minute = _next_in(self.minutes, moment.minute)
                if minute is None:
                    moment = moment.replace(minute=0, second=0) + timedelta(hours=1)
                else:
                    moment = moment.replace(minute=minute, second=0)
                continue

            if moment.second not in self.seconds:
                second = _next_in(self.seconds, moment.second)
                if second is None:
                    moment = moment.replace(second=0) + timedelta(minutes=1)
                else:
                    moment = moment.replace(second=second)
                continue

            return moment

        # Unreachable for parsed expressions: parse_expression rejects
        # day/month combinations that never occur.
        raise RuntimeError(f"No occurrence of '{self.expression}' within {MAX_SEARCH_YEARS} years")

    def __str__(self) -> str:
        return self.expression


def _check_reachable(expression: str, days_of_month: FrozenSet[int], months: FrozenSet[int]) -> None:
    for month in months:
        if any(day <= MAX_DAYS_IN_MONTH[month] for day in days_of_month):
            return
    raise ScheduleParseError(expression, "day-of-month never occurs in the selected months")


def parse_expression(expression: str) -> CronExpression:
    """Parse one schedule string (5/6-field cron text or macro alias)."""
    if not isinstance(expression, str):
        raise ScheduleParseError(repr(expression), "schedule must be a string")

    text = expression.strip()
    if not text:
        raise ScheduleParseError(expression, "empty schedule")

    if text.startswith("@"):
        canonical = MACROS.get(text.lower())
        if canonical is None:
            raise ScheduleParseError(expression, f"unknown macro '{text}'")
    else:
        canonical = " ".join(text.split())

    parts = canonical.split()
    if len(parts) == 5:
        has_seconds = False
        second_text = "0"
    elif len(parts) == 6:
        has_seconds = True
        second_text, parts = parts[0], parts[1:]
    else:
        raise ScheduleParseError(expression, f"expected 5 or 6 fields, got {len(parts)}")

    minute_text, hour_text, dom_text, month_text, dow_text = parts
    days_of_week = _parse_field(dow_text, DAY_OF_WEEK, expression)
    days_of_week = frozenset(0 if day == 7 else day for day in days_of_week)

    days_of_month = _parse_field(dom_text, DAY_OF_MONTH, expression)
    months = _parse_field(month_text, MONTH, expression)
    day_of_month_restricted = not dom_text.startswith("*")
    day_of_week_restricted = not dow_text.startswith("*")

    if day_of_month_restricted and not day_of_week_restricted:
        _check_reachable(expression, days_of_month, months)

    return CronExpression(
        expression=expression,
        canonical=canonical,
        seconds=tuple(sorted(_parse_field(second_text, SECOND, expression))),
        minutes=tuple(sorted(_parse_field(minute_text, MINUTE, expression))),
        hours=tuple(sorted(_parse_field(hour_text, HOUR, expression))),
        days_of_month=days_of_month,
        months=months,
        days_of_week=days_of_week,
        day_of_month_restricted=day_of_month_restricted,
        day_of_week_restricted=day_of_week_restricted,
        has_seconds=has_seconds,
    )


# -----------------------------------------------------------------------------
# Schedule Set
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ScheduleSet:
    """
    Independent schedules; the earliest next occurrence of any one wins.

    Parsed once at configuration time. Occurrences are recomputed per call
    because ``after`` (the timer's last run) keeps moving.
    """
    expressions: Tuple[CronExpression, ...]

    def __post_init__(self):
        if not self.expressions:
            raise ScheduleParseError("", "at least one schedule is required")

    def __iter__(self) -> Iterator[CronExpression]:
        return iter(self.expressions)

    def __len__(self) -> int:
        return len(self.expressions)

    def next_occurrence(self, after: datetime) -> datetime:
        return min(expression.next_occurrence(after) for expression in self.expressions)

    def to_list(self):
        return [expression.expression for expression in self.expressions]


def parse_schedules(expressions: Union[str, Iterable[str]]) -> ScheduleSet:
    """Parse and validate every schedule string, in order."""
    if isinstance(expressions, str):
        expressions = [expressions]
    return ScheduleSet(tuple(parse_expression(text) for text in expressions))


def next_occurrence(
    schedule: Union[str, CronExpression, ScheduleSet],
    after: datetime,
) -> datetime:
    """Next firing of a single expression or of a whole set."""
    if isinstance(schedule, str):
        schedule = parse_expression(schedule)
    return schedule.next_occurrence(after)
