"""
Occurrence Calculator

Pure calendar arithmetic for recurrence rules: the next occurrence after an
anchor date, and bounded forward sequences of occurrences. All computations
work on civil dates. Weekday numbers follow the rule model (0=Sunday).
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from recurring_engine.models.recurrence_rule import (
    LAST_WEEK_OF_MONTH,
    RecurrenceRule,
    RecurrenceType,
)
from recurring_engine.services.clock import get_clock

logger = logging.getLogger(__name__)

# Upper bound on steps taken while walking a series forward
MAX_ITERATIONS = 10000


def sunday_weekday(day: date) -> int:
    """Weekday number with 0=Sunday..6=Saturday."""
    return (day.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(day: date, months: int) -> date:
    """First day of the month `months` after the month containing `day`."""
    return day.replace(day=1) + relativedelta(months=months)


def first_weekday_of_month(year: int, month: int, weekday: int) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(weekday - sunday_weekday(first)) % 7)


def last_weekday_of_month(year: int, month: int, weekday: int) -> date:
    last = date(year, month, days_in_month(year, month))
    return last - timedelta(days=(sunday_weekday(last) - weekday) % 7)


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> Optional[date]:
    """The nth `weekday` of the month, or None when the month has fewer."""
    candidate = first_weekday_of_month(year, month, weekday) + timedelta(weeks=n - 1)
    if candidate.month != month:
        return None
    return candidate


def _next_daily(rule: RecurrenceRule, anchor: date) -> date:
    return anchor + timedelta(days=rule.interval)


def _weekly_days(rule: RecurrenceRule) -> FrozenSet[int]:
    if not rule.weekdays and rule.weekday is not None:
        return frozenset([rule.weekday])
    return rule.weekdays


def _next_weekly(rule: RecurrenceRule, anchor: date) -> date:
    weekdays = _weekly_days(rule)
    if not weekdays:
        return anchor + timedelta(weeks=rule.interval)

    # Weeks start on Sunday; look for a later match in the anchor's week first
    anchor_offset = sunday_weekday(anchor)
    block_start = anchor - timedelta(days=anchor_offset)
    for offset in range(anchor_offset + 1, 7):
        if offset in weekdays:
            return block_start + timedelta(days=offset)

    return block_start + timedelta(weeks=rule.interval, days=min(weekdays))


def _next_monthly(rule: RecurrenceRule, anchor: date) -> date:
    target = add_months(anchor, rule.interval)
    wanted_day = rule.month_day or anchor.day
    return target.replace(day=min(wanted_day, days_in_month(target.year, target.month)))


def _next_monthly_weekday(rule: RecurrenceRule, anchor: date) -> date:
    target = add_months(anchor, rule.interval)
    weekday = rule.weekday if rule.weekday is not None else sunday_weekday(anchor)
    week_of_month = rule.week_of_month or (anchor.day - 1) // 7 + 1

    if week_of_month >= LAST_WEEK_OF_MONTH:
        return last_weekday_of_month(target.year, target.month, weekday)

    return nth_weekday_of_month(target.year, target.month, weekday, week_of_month)


def _next_monthly_last_day(rule: RecurrenceRule, anchor: date) -> date:
    target = add_months(anchor, rule.interval)
    return target.replace(day=days_in_month(target.year, target.month))


_CALCULATORS: Dict[RecurrenceType, Callable[[RecurrenceRule, date], date]] = {
    RecurrenceType.DAILY: _next_daily,
    RecurrenceType.WEEKLY: _next_weekly,
    RecurrenceType.MONTHLY: _next_monthly,
    RecurrenceType.MONTHLY_WEEKDAY: _next_monthly_weekday,
    RecurrenceType.MONTHLY_LAST_DAY: _next_monthly_last_day,
}


def next_occurrence(rule: RecurrenceRule, anchor_date: date) -> Optional[date]:
    """
    Compute the first occurrence strictly after the anchor date.

    Args:
        rule: Recurrence rule snapshot
        anchor_date: Original due date or completion date

    Returns:
        The next date, or None when the rule does not recur or the candidate
        falls after the rule's end date
    """
    calculate = _CALCULATORS.get(rule.type)
    if calculate is None:
        return None

    candidate = calculate(rule, anchor_date)
    if rule.end_date is not None and candidate > rule.end_date:
        return None
    return candidate


def iter_occurrences(rule: RecurrenceRule, anchor_date: date) -> Iterator[date]:
    """Walk the series forward from the anchor until it is exhausted."""
    current = anchor_date
    for _ in range(MAX_ITERATIONS):
        current = next_occurrence(rule, current)
        if current is None:
            return
        yield current

    logger.warning(f"Stopped walking series after {MAX_ITERATIONS} steps from {anchor_date}")


def fast_forward(rule: RecurrenceRule, anchor_date: date, floor: date) -> date:
    """
    Latest occurrence of the anchor's series that is not after floor, or the
    anchor itself when it is already at or past floor.

    Daily and weekly series are jumped arithmetically so walking a long-lived
    series forward stays within MAX_ITERATIONS. Monthly series advance at most
    a few occurrences per year and are returned unchanged.
    """
    if anchor_date >= floor:
        return anchor_date

    if rule.type == RecurrenceType.DAILY:
        step = timedelta(days=rule.interval)
        return anchor_date + ((floor - anchor_date) // step) * step

    if rule.type == RecurrenceType.WEEKLY:
        block = timedelta(weeks=rule.interval)
        weekdays = _weekly_days(rule)
        if not weekdays:
            return anchor_date + ((floor - anchor_date) // block) * block

        # Whole blocks past the anchor's week; every block after it is on the grid
        anchor_block = anchor_date - timedelta(days=sunday_weekday(anchor_date))
        skipped = (floor - anchor_block) // block - 1
        if skipped >= 1:
            return anchor_block + skipped * block + timedelta(days=min(weekdays))

    return anchor_date


def next_n_occurrences(
    rule: RecurrenceRule,
    anchor_date: Optional[date],
    n: int,
    start_from: Optional[date] = None,
    today: Optional[date] = None,
    align_to_anchor: bool = False,
) -> List[date]:
    """
    Compute up to n upcoming occurrences, all strictly after `start_from`
    (defaulting to today).

    By default the walk is seeded from `start_from`, or from the anchor when
    the series has not started yet, so previews run forward from the present
    even when the stored due date is long past. With `align_to_anchor` the
    dates stay on the anchor's own grid instead. Fewer than n dates are
    returned only when the series ends first.
    """
    if n <= 0 or not rule.is_recurring:
        return []

    floor = start_from
    if floor is None:
        floor = today if today is not None else get_clock().today()

    if anchor_date is None:
        seed = floor
    elif align_to_anchor:
        seed = fast_forward(rule, anchor_date, floor)
    else:
        seed = max(anchor_date, floor)

    occurrences = []
    for occurrence in iter_occurrences(rule, seed):
        if occurrence <= floor:
            continue
        occurrences.append(occurrence)
        if len(occurrences) >= n:
            break
    return occurrences


def first_occurrence_on_or_after(rule: RecurrenceRule, anchor_date: date, floor: date) -> Optional[date]:
    """First date of the anchor's series (anchor included) that is not before floor."""
    start = fast_forward(rule, anchor_date, floor)
    if start >= floor:
        if start != anchor_date and rule.end_date is not None and start > rule.end_date:
            return None
        return start
    for occurrence in iter_occurrences(rule, start):
        if occurrence >= floor:
            return occurrence
    return None
