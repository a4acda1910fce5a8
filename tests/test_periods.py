from datetime import date

from periods import Period, month_end, resolve_period


def test_month_end_handles_december_and_leap_years():
    assert month_end(date(2024, 12, 5)) == date(2024, 12, 31)
    assert month_end(date(2024, 2, 1)) == date(2024, 2, 29)
    assert month_end(date(2023, 2, 1)) == date(2023, 2, 28)


def test_resolve_defaults_to_this_month():
    assert resolve_period(None, None, today=date(2024, 12, 15)) == Period(
        date(2024, 12, 1), date(2024, 12, 31)
    )


def test_period_days_are_inclusive():
    period = Period(date(2024, 2, 28), date(2024, 3, 1))
    assert list(period.days()) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]
