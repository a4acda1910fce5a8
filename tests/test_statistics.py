from datetime import date
from decimal import Decimal

import pytest

from errors import InvalidFormat
from schemas import TransactionIn
from services import StatisticsService, TransactionService

USER = "user-1"


def _services() -> tuple[TransactionService, StatisticsService]:
    transactions = TransactionService({USER: {}}, timezone="UTC")
    return transactions, StatisticsService(transactions, timezone="UTC")


def _add(
    service: TransactionService, day: str, amount: float, category: str
) -> None:
    service.create(
        USER, TransactionIn(amount=amount, title="t", category=category, date=day)
    )


def test_general_and_balance_changes() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-03-05", 1000, "Доходы")
    _add(transactions, "2024-03-08", 300, "Еда")

    result = statistics.get_statistics(USER, date(2024, 3, 1), date(2024, 3, 10))

    general = result.general_statistics
    assert general.income == 1000
    assert general.expenses == 300
    assert general.balance == 700

    changes = result.balance_changes_by_date
    assert len(changes) == 10
    assert changes["2024-03-05"] == 1000
    assert changes["2024-03-08"] == -300
    assert all(
        value == 0
        for key, value in changes.items()
        if key not in ("2024-03-05", "2024-03-08")
    )
    assert result.from_date == "2024-03-01"
    assert result.to_date == "2024-03-10"


def test_out_of_period_transactions_are_ignored() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-02-28", 50, "Еда")
    _add(transactions, "2024-03-02", 20, "Еда")

    result = statistics.get_statistics(USER, date(2024, 3, 1), date(2024, 3, 31))
    assert result.general_statistics.expenses == 20
    assert "2024-02-28" not in result.balance_changes_by_date


def test_spending_curve_uses_period_and_same_date_history() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-03-02", 40, "Еда")
    _add(transactions, "2024-03-02", 10, "Транспорт")
    _add(transactions, "2024-03-02", 500, "Доходы")
    _add(transactions, "2024-03-03", 25, "Еда")

    result = statistics.get_statistics(USER, date(2024, 3, 1), date(2024, 3, 3))
    curve = {point.date: point for point in result.spending_curve_info}

    assert [point.date for point in result.spending_curve_info] == [
        "2024-03-01",
        "2024-03-02",
        "2024-03-03",
    ]
    assert curve["2024-03-01"].current_spending == 0
    assert curve["2024-03-02"].current_spending == 50
    assert curve["2024-03-02"].average_spending == 50
    assert curve["2024-03-03"].current_spending == 25


def test_default_period_is_current_month() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-02-10", 70, "Еда")
    _add(transactions, "2024-01-31", 30, "Еда")

    result = statistics.get_statistics(USER, today=date(2024, 2, 15))

    assert result.from_date == "2024-02-01"
    assert result.to_date == "2024-02-29"
    assert len(result.balance_changes_by_date) == 29
    assert result.general_statistics.expenses == 70


def test_single_bound_defaults_to_its_month() -> None:
    _, statistics = _services()
    result = statistics.get_statistics(USER, from_date=date(2024, 4, 10))
    assert (result.from_date, result.to_date) == ("2024-04-10", "2024-04-30")

    result = statistics.get_statistics(USER, to_date=date(2024, 4, 10))
    assert (result.from_date, result.to_date) == ("2024-04-01", "2024-04-10")


def test_inverted_period_is_rejected() -> None:
    _, statistics = _services()
    with pytest.raises(InvalidFormat):
        statistics.get_statistics(USER, date(2024, 4, 10), date(2024, 4, 1))


def test_to_dict_uses_wire_names() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-03-01", 10, "Еда")

    payload = statistics.get_statistics(
        USER, date(2024, 3, 1), date(2024, 3, 1)
    ).to_dict()

    assert payload["generalStatistics"] == {
        "income": 0.0,
        "expenses": 10.0,
        "balance": -10.0,
    }
    assert payload["balanceChangesByDate"] == {"2024-03-01": -10.0}
    assert payload["spendingCurveInfo"] == [
        {"averageSpending": 10.0, "currentSpending": 10.0, "date": "2024-03-01"}
    ]


def test_sums_do_not_accumulate_float_error() -> None:
    transactions, statistics = _services()
    _add(transactions, "2024-03-01", 0.1, "Еда")
    _add(transactions, "2024-03-01", 0.2, "Еда")

    result = statistics.get_statistics(USER, date(2024, 3, 1), date(2024, 3, 1))

    assert result.general_statistics.expenses == Decimal("0.3")
    assert result.to_dict()["generalStatistics"]["expenses"] == 0.3
    assert result.balance_changes_by_date["2024-03-01"] == Decimal("-0.3")
