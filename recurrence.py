import re
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from errors import InvalidFormat

WEEKDAYS = {
    "mon": 0,
    "monday": 0,
    "tue": 1,
    "tuesday": 1,
    "wed": 2,
    "wednesday": 2,
    "thu": 3,
    "thursday": 3,
    "fri": 4,
    "friday": 4,
    "sat": 5,
    "saturday": 5,
    "sun": 6,
    "sunday": 6,
}

DAY_OF_MONTH_PATTERN = re.compile(r"[+-]?[0-9]+")


def local_today(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


def normalized_date(year: int, month: int, day: int) -> date:
    """Return the ``day``-th day counted from the start of the month.

    Months past December roll into the next year and days past the end of
    the month overflow into the following one (April 31 is May 1).
    """
    total_months = month - 1
    year += total_months // 12
    month = total_months % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def _add_year(base: date) -> date:
    return normalized_date(base.year + 1, base.month, base.day)


def parse_weekday(token: str) -> Optional[int]:
    return WEEKDAYS.get(token.lower())


def _parse_day_of_month(token: str) -> Optional[int]:
    if not DAY_OF_MONTH_PATTERN.fullmatch(token):
        return None
    return int(token)


def _tokens(repeat_time: str) -> list[str]:
    return [part.strip() for part in repeat_time.split(",") if part.strip()]


def validate_repeat_spec(repeat_time: str) -> None:
    if not repeat_time:
        return
    for token in _tokens(repeat_time):
        day = _parse_day_of_month(token)
        if day is not None:
            if day < 1 or day > 31:
                raise InvalidFormat(
                    f"invalid day number: {day}, must be between 1 and 31"
                )
            continue
        if parse_weekday(token) is None:
            raise InvalidFormat(
                f"invalid weekday: {token}, must be one of: "
                "mon, tue, wed, thu, fri, sat, sun"
            )


def calculate_next_appear_date(
    reference: date, repeat_time: str, *, strictly_after: bool = False
) -> date:
    """Nearest date a repeat spec fires on, on or after ``reference``.

    With ``strictly_after`` a day-of-month token equal to the reference day
    resolves to next month, so a spawned recurrence never lands on its own date.
    """
    next_date = _add_year(reference)

    for token in _tokens(repeat_time):
        day = _parse_day_of_month(token)
        if day is not None:
            if day > reference.day or (day == reference.day and not strictly_after):
                candidate = normalized_date(reference.year, reference.month, day)
            else:
                candidate = normalized_date(
                    reference.year, reference.month + 1, day
                )
            next_date = min(next_date, candidate)
            continue

        weekday = parse_weekday(token)
        if weekday is None:
            continue
        # The reference day itself resolves to next week.
        delta = (weekday - reference.weekday()) % 7 or 7
        next_date = min(next_date, reference + timedelta(days=delta))

    return next_date
