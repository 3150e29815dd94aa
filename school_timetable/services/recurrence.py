"""Recurrence expansion for timetable templates."""
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta

from school_timetable.models import RecurrenceType, Weekday


def week_of_month(value: date) -> int:
    """Ordinal of the date's weekday within its month (1 for the first Monday, 2 for the second, ...)."""
    return (value.day - 1) // 7 + 1


def _first_occurrence(start: date, weekday_index: int) -> date:
    return start + timedelta(days=(weekday_index - start.weekday()) % 7)


def iter_recurring_dates(
    start_date: date,
    end_date: date,
    weekdays: Iterable[Weekday],
    recurrence_type: RecurrenceType = RecurrenceType.WEEKLY,
    exclude_dates: Iterable[date] = (),
) -> Iterator[date]:
    """
    Yield the dates in [start_date, end_date] that fall on one of the weekdays.

    Decimation by recurrence type:
    - WEEKLY: every matching date
    - BIWEEKLY: matching dates in even weeks, counting Monday-based weeks from the week of start_date
    - MONTHLY: the same weekday-of-month ordinal as the weekday's first occurrence on/after start_date
    - CUSTOM: no decimation, exclude_dates is the only extra filter

    Excluded dates are removed in every mode.
    """
    selected = {day.index for day in weekdays}
    if end_date < start_date or not selected:
        return

    excluded = set(exclude_dates)
    week_zero = start_date - timedelta(days=start_date.weekday())
    monthly_ordinals = {
        index: week_of_month(_first_occurrence(start_date, index)) for index in selected
    }

    current = start_date
    while current <= end_date:
        weekday_index = current.weekday()
        if weekday_index in selected and current not in excluded:
            if recurrence_type == RecurrenceType.BIWEEKLY:
                keep = ((current - week_zero).days // 7) % 2 == 0
            elif recurrence_type == RecurrenceType.MONTHLY:
                keep = week_of_month(current) == monthly_ordinals[weekday_index]
            else:
                keep = True
            if keep:
                yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class RecurrenceRule:
    """A restartable recurrence: every iteration expands the rule from scratch."""

    start_date: date
    end_date: date
    weekdays: frozenset[Weekday]
    recurrence_type: RecurrenceType = RecurrenceType.WEEKLY
    exclude_dates: frozenset[date] = frozenset()

    def __iter__(self) -> Iterator[date]:
        return iter_recurring_dates(
            self.start_date,
            self.end_date,
            self.weekdays,
            self.recurrence_type,
            self.exclude_dates,
        )

    def dates(self) -> list[date]:
        return list(self)

    @classmethod
    def from_template(cls, template) -> "RecurrenceRule":
        return cls(
            start_date=template.start_date,
            end_date=template.end_date,
            weekdays=frozenset(template.weekdays),
            recurrence_type=template.recurrence_type,
            exclude_dates=frozenset(template.excluded_dates),
        )


def date_window(filter_type: str, anchor: date) -> tuple[date, date]:
    """
    Inclusive date bounds around an anchor date.

    Args:
        filter_type: One of "day", "week" (Monday to Sunday), "month", "year"
        anchor: Date the window is built around

    Returns:
        Tuple of (first_date, last_date)
    """
    if filter_type == "day":
        return anchor, anchor
    if filter_type == "week":
        monday = anchor - timedelta(days=anchor.weekday())
        return monday, monday + timedelta(days=6)
    if filter_type == "month":
        first = anchor.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return first, next_month - timedelta(days=1)
    if filter_type == "year":
        return date(anchor.year, 1, 1), date(anchor.year, 12, 31)
    raise ValueError(f"Unsupported filter type: {filter_type}")
