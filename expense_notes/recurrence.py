"""
Recurrence Engine

Pure functions over a RecurrencePeriod and dates. No I/O, no clock:
callers pass `now` explicitly.

Steps use dateutil's relativedelta, so calendar arithmetic clamps to
the end of short months (Jan 31 + 1 month = Feb 28/29, Feb 29 + 1 year
= Feb 28) and aware datetimes keep their wall-clock time across DST
changes.
"""

from datetime import date, datetime
from typing import TypeVar, Union

from dateutil.relativedelta import relativedelta

from expense_notes.dates import ensure_aware
from expense_notes.models.expense import RecurrencePeriod, RecurringSchedule


Moment = TypeVar("Moment", date, datetime)

_STEPS = {
    RecurrencePeriod.DAILY: relativedelta(days=1),
    RecurrencePeriod.WEEKLY: relativedelta(weeks=1),
    RecurrencePeriod.MONTHLY: relativedelta(months=1),
    RecurrencePeriod.YEARLY: relativedelta(years=1),
}


def _align(a: Union[date, datetime], b: Union[date, datetime]):
    """Make a date/datetime pair comparable."""
    if isinstance(a, datetime) != isinstance(b, datetime):
        return ensure_aware(a), ensure_aware(b)
    if isinstance(a, datetime):
        return ensure_aware(a), ensure_aware(b)
    return a, b


def next_occurrence(moment: Moment, period: RecurrencePeriod) -> Moment:
    """
    The occurrence one period after `moment`.

    Daily +1 day, weekly +7 days, monthly +1 calendar month, yearly +1
    calendar year. NONE returns `moment` unchanged.
    """
    step = _STEPS.get(RecurrencePeriod(period))
    if step is None:
        return moment
    return moment + step


def is_due(schedule: RecurringSchedule, now: datetime) -> bool:
    """Enabled, has a period, and next_due has been reached."""
    if not schedule.enabled or schedule.period == RecurrencePeriod.NONE:
        return False
    due, current = _align(schedule.next_due, now)
    return current >= due


def missed_occurrences(
    anchor: Moment,
    period: RecurrencePeriod,
    now: Union[date, datetime],
    cap: int,
) -> list[Moment]:
    """
    Occurrences after `anchor` whose whole period elapsed before `now`.

    Steps from the anchor with next_occurrence. An occurrence is missed
    when its successor is also due; the last due occurrence (the one
    currently due) is not included, the caller decides whether to
    materialize it. The anchor itself is never returned.

    Returns at most `cap` dates, in chronological order.
    """
    if RecurrencePeriod(period) == RecurrencePeriod.NONE or cap <= 0:
        return []

    missed = []
    current = anchor
    while len(missed) < cap:
        candidate = next_occurrence(current, period)
        successor, limit = _align(next_occurrence(candidate, period), now)
        if successor > limit:
            break
        missed.append(candidate)
        current = candidate

    return missed


def next_occurrence_after(
    anchor: Moment,
    period: RecurrencePeriod,
    now: Union[date, datetime],
) -> Moment:
    """First occurrence on the anchor's grid strictly after `now`."""
    if RecurrencePeriod(period) == RecurrencePeriod.NONE:
        return anchor

    current = anchor
    while True:
        left, right = _align(current, now)
        if left > right:
            return current
        current = next_occurrence(current, period)
