"""Monthly rent obligation schedule"""

from datetime import date
from typing import List, Optional

from rental_gateway.utils.date_utils import add_months, first_of_month


def first_due_date(activated_on: date) -> date:
    """First obligation falls due on the first day of the activation month."""
    return first_of_month(activated_on)


def next_due_date(previous_due: date) -> date:
    """Successor obligation is due exactly one calendar month after its predecessor."""
    return add_months(previous_due, 1)


def is_within_term(due_date: date, end_date: Optional[date]) -> bool:
    """Open-ended tenancies never run out of periods"""
    return end_date is None or due_date <= end_date


def due_dates(first_due: date, count: int) -> List[date]:
    """
    Generate ``count`` consecutive due dates starting at ``first_due``.

    Dates are computed from the first due date rather than chained, so a
    month-end start never drifts (Jan 31 -> Feb 28 -> Mar 31).

    Example:
        due_dates(date(2024, 1, 1), 3) -> [2024-01-01, 2024-02-01, 2024-03-01]
    """
    if count <= 0:
        return []
    return [add_months(first_due, i) for i in range(count)]
