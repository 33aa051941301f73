"""Cost Overlap - month-weighted cost of subscriptions inside a query window.

Invariants:
    - Month granularity throughout; day-of-month never affects the result
    - Both boundary months count (sub_end == window_start overlaps by 1)
    - Result is never negative, inverted windows overlap by 0
    - Open-ended subscriptions (end None) run to the window end

Design Decisions:
    - Pure functions over (start, end) tuples: the store fetches rows, this module
      weighs them, so the arithmetic is testable without a database
"""

from collections.abc import Iterable
from datetime import date

from online_subs.core.domain_types import MONTHS_PER_YEAR


def overlapped_months(
    window_start: date,
    window_end: date,
    sub_start: date,
    sub_end: date | None,
) -> int:
    """Count months shared by [window_start, window_end] and [sub_start, sub_end or ∞]."""
    effective_start = max(_month_index(window_start), _month_index(sub_start))
    effective_end = _month_index(window_end)
    if sub_end is not None:
        effective_end = min(effective_end, _month_index(sub_end))
    if effective_end < effective_start:
        return 0
    return effective_end - effective_start + 1


def weighted_total_cost(
    window_start: date,
    window_end: date,
    subscriptions: Iterable[tuple[int, date, date | None]],
) -> int:
    """Sum cost * overlapped months over (cost, start_date, end_date) rows."""
    total = 0
    for cost, sub_start, sub_end in subscriptions:
        months = overlapped_months(window_start, window_end, sub_start, sub_end)
        if months > 0:
            total += cost * months
    return total


def _month_index(value: date) -> int:
    return value.year * MONTHS_PER_YEAR + (value.month - 1)
