"""Unit tests for booking interval conflict detection"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from rental_gateway.domain.conflicts import effective_end, find_conflicts, intervals_overlap
from rental_gateway.domain.models import DateInterval


@dataclass
class FakeBooking:
    start_date: date
    end_date: Optional[date]
    name: str = "b"


def test_shared_boundary_day_conflicts():
    """A tenancy ending on day D conflicts with one starting on day D"""
    first = DateInterval(date(2025, 1, 1), date(2025, 6, 30))
    second = DateInterval(date(2025, 6, 30), date(2025, 12, 31))

    assert intervals_overlap(first, second) is True
    assert intervals_overlap(second, first) is True


def test_adjacent_days_do_not_conflict():
    """Ending on D-1 and starting on D is free"""
    first = DateInterval(date(2025, 1, 1), date(2025, 6, 29))
    second = DateInterval(date(2025, 6, 30), date(2025, 12, 31))

    assert intervals_overlap(first, second) is False
    assert intervals_overlap(second, first) is False


def test_contained_interval_conflicts():
    outer = DateInterval(date(2025, 1, 1), date(2025, 12, 31))
    inner = DateInterval(date(2025, 3, 1), date(2025, 4, 1))

    assert intervals_overlap(outer, inner) is True


def test_open_ended_uses_sentinel():
    """Open-ended tenancy blocks the following ten years only"""
    open_ended = DateInterval(date(2025, 1, 1), None)

    assert effective_end(date(2025, 1, 1), None) == date(2035, 1, 1)
    assert intervals_overlap(open_ended, DateInterval(date(2034, 12, 1), date(2035, 2, 1))) is True
    assert intervals_overlap(open_ended, DateInterval(date(2035, 1, 2), date(2035, 6, 1))) is False


def test_open_ended_sentinel_horizon_is_configurable():
    open_ended = DateInterval(date(2025, 1, 1), None)
    later = DateInterval(date(2026, 6, 1), date(2026, 7, 1))

    assert intervals_overlap(open_ended, later, open_ended_years=1) is False
    assert intervals_overlap(open_ended, later, open_ended_years=2) is True


def test_find_conflicts_returns_only_overlapping():
    existing = [
        FakeBooking(date(2025, 1, 1), date(2025, 3, 31), "q1"),
        FakeBooking(date(2025, 4, 1), date(2025, 6, 30), "q2"),
        FakeBooking(date(2025, 10, 1), None, "open"),
    ]
    requested = DateInterval(date(2025, 3, 15), date(2025, 4, 15))

    conflicts = find_conflicts(requested, existing)

    assert [b.name for b in conflicts] == ["q1", "q2"]


def test_find_conflicts_empty_when_free():
    existing = [FakeBooking(date(2025, 1, 1), date(2025, 1, 31))]

    assert find_conflicts(DateInterval(date(2025, 2, 1), date(2025, 2, 28)), existing) == []
