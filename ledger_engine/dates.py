import calendar
from datetime import date
from typing import Iterator

from dateutil.relativedelta import relativedelta


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def add_months(d: date, months: int) -> date:
    """Calendar month shift, clamped to the last day of the target month."""
    return d + relativedelta(months=months)


def day_in_month(year: int, month: int, day: int) -> date:
    """date(year, month, day) with day clamped to the month's length."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last))


def month_starts(as_of: date, months: int) -> Iterator[date]:
    first = month_start(as_of)
    for i in range(months):
        yield first + relativedelta(months=i)
