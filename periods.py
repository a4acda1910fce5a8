from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

from errors import InvalidFormat


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def resolve_period(
    start: Optional[date],
    end: Optional[date],
    *,
    today: date,
) -> Period:
    if start is None and end is None:
        return Period(month_start(today), month_end(today))
    if start is None:
        start = month_start(end)
    if end is None:
        end = month_end(start)
    if start > end:
        raise InvalidFormat("from date must not be after to date")
    return Period(start, end)
