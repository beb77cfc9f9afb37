"""Booking interval conflict detection

Intervals are closed on both ends: a tenancy ending on day D conflicts with
one starting on day D. Open-ended tenancies are compared against a far-future
sentinel so interval arithmetic stays total.
"""

from datetime import date
from typing import Iterable, List, Optional, Protocol, Tuple

from dateutil.relativedelta import relativedelta

from rental_gateway.domain.models import DateInterval

DEFAULT_OPEN_ENDED_YEARS = 10


class HasInterval(Protocol):
    start_date: date
    end_date: Optional[date]


def effective_end(start: date, end: Optional[date], open_ended_years: int = DEFAULT_OPEN_ENDED_YEARS) -> date:
    """Return the end used for comparison, substituting the sentinel when open-ended"""
    if end is not None:
        return end
    return start + relativedelta(years=open_ended_years)


def normalize(interval: DateInterval, open_ended_years: int = DEFAULT_OPEN_ENDED_YEARS) -> Tuple[date, date]:
    return interval.start, effective_end(interval.start, interval.end, open_ended_years)


def intervals_overlap(
    a: DateInterval,
    b: DateInterval,
    open_ended_years: int = DEFAULT_OPEN_ENDED_YEARS,
) -> bool:
    """Closed-interval overlap test: a.start <= b.end and b.start <= a.end"""
    a_start, a_end = normalize(a, open_ended_years)
    b_start, b_end = normalize(b, open_ended_years)
    return a_start <= b_end and b_start <= a_end


def find_conflicts(
    requested: DateInterval,
    existing: Iterable[HasInterval],
    open_ended_years: int = DEFAULT_OPEN_ENDED_YEARS,
) -> List[HasInterval]:
    """Return every existing booking whose interval overlaps the requested one"""
    return [
        booking
        for booking in existing
        if intervals_overlap(
            requested,
            DateInterval(start=booking.start_date, end=booking.end_date),
            open_ended_years,
        )
    ]
