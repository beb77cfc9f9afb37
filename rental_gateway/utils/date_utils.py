"""Date manipulation utilities"""

from datetime import date

from dateutil.relativedelta import relativedelta


def first_of_month(day: date) -> date:
    """Return the first calendar day of the month containing ``day``"""
    return day.replace(day=1)


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months"""
    return from_date + relativedelta(months=months)
