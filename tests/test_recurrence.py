from datetime import date, timedelta

import pytest

from errors import InvalidFormat
from recurrence import calculate_next_appear_date, validate_repeat_spec

WEEKDAY_TOKENS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def test_validate_accepts_empty_spec() -> None:
    validate_repeat_spec("")


def test_validate_accepts_days_and_weekdays() -> None:
    validate_repeat_spec("1, 15, 31")
    validate_repeat_spec("mon,Friday, SUN")
    validate_repeat_spec("mon,,15")


def test_validate_rejects_day_out_of_range() -> None:
    with pytest.raises(InvalidFormat, match="32"):
        validate_repeat_spec("32")
    with pytest.raises(InvalidFormat):
        validate_repeat_spec("0")


def test_validate_names_offending_token() -> None:
    with pytest.raises(InvalidFormat, match="xyz"):
        validate_repeat_spec("mon, 15, xyz")


def test_day_of_month_later_this_month():
    assert calculate_next_appear_date(date(2024, 3, 10), "20") == date(2024, 3, 20)


def test_day_of_month_today_resolves_to_today():
    assert calculate_next_appear_date(date(2024, 3, 10), "10") == date(2024, 3, 10)


def test_day_of_month_already_passed_goes_to_next_month():
    assert calculate_next_appear_date(date(2024, 3, 10), "5") == date(2024, 4, 5)


def test_day_of_month_rolls_over_year():
    assert calculate_next_appear_date(date(2024, 12, 20), "3") == date(2025, 1, 3)


def test_missing_day_overflows_into_following_month():
    assert calculate_next_appear_date(date(2024, 4, 20), "31") == date(2024, 5, 1)


@pytest.mark.parametrize(
    "reference",
    [date(2024, 1, 1), date(2024, 2, 14), date(2024, 7, 31), date(2025, 12, 28)],
)
def test_same_weekday_is_always_next_week(reference):
    token = WEEKDAY_TOKENS[reference.weekday()]
    assert calculate_next_appear_date(reference, token) == reference + timedelta(
        days=7
    )


def test_weekday_later_this_week():
    # Monday -> Wednesday
    assert calculate_next_appear_date(date(2024, 1, 1), "wednesday") == date(
        2024, 1, 3
    )


def test_weekday_earlier_in_week_wraps():
    # Friday -> Monday
    assert calculate_next_appear_date(date(2024, 1, 5), "Mon") == date(2024, 1, 8)


def test_earliest_candidate_wins():
    assert calculate_next_appear_date(date(2024, 1, 1), "15, tue") == date(2024, 1, 2)


def test_empty_spec_falls_back_to_one_year():
    assert calculate_next_appear_date(date(2024, 3, 10), "") == date(2025, 3, 10)


def test_leap_day_fallback_normalizes():
    assert calculate_next_appear_date(date(2024, 2, 29), "") == date(2025, 3, 1)


@pytest.mark.parametrize("token", ["1_5", "١٥", "15.0", "0x0f"])
def test_validate_rejects_non_decimal_day_numbers(token) -> None:
    with pytest.raises(InvalidFormat, match="invalid weekday"):
        validate_repeat_spec(token)


def test_signed_day_numbers_are_range_checked() -> None:
    validate_repeat_spec("+5")
    with pytest.raises(InvalidFormat, match="-5"):
        validate_repeat_spec("-5")
