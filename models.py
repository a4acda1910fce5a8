from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

INCOME_CATEGORY = "Доходы"

BASE_CATEGORY_NAMES = (
    "Еда",
    "Транспорт",
    "Развлечения",
    "Здоровье",
    "Одежда",
    INCOME_CATEGORY,
    "Образование",
    "Подарки",
    "Прочее",
)

DEFAULT_PAGE_SIZE = 20

DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_iso_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` calendar date."""
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"expected YYYY-MM-DD, got {value!r}")
    return date.fromisoformat(value)


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps the shortest repr of floats, 0.1 stays 0.1
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return amount


def amount_to_json(amount: Decimal) -> float:
    return float(amount)


def parse_stored_date(value: Optional[str]) -> Optional[date]:
    """Read a date written either as ``YYYY-MM-DD`` or as an ISO datetime.

    Year 1 is the zero value older data files use for "no date".
    """
    if not value:
        return None
    if len(value) > 10:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    else:
        parsed = parse_iso_date(value)
    if parsed.year == 1:
        return None
    return parsed


@dataclass
class Transaction:
    id: str
    amount: Decimal
    title: str
    category: str
    date: date
    next_appear_date: Optional[date] = None
    repeat_time: str = ""

    @property
    def is_income(self) -> bool:
        return self.category == INCOME_CATEGORY

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "amount": amount_to_json(self.amount),
            "title": self.title,
            "category": self.category,
            "date": self.date.isoformat(),
        }
        if self.next_appear_date is not None:
            payload["nextAppearDate"] = self.next_appear_date.isoformat()
        if self.repeat_time:
            payload["repeatTime"] = self.repeat_time
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Transaction":
        txn_date = parse_stored_date(payload.get("date"))
        if txn_date is None:
            raise ValueError(f"Transaction {payload.get('id')!r} has no date")
        return cls(
            id=str(payload["id"]),
            amount=parse_amount(payload.get("amount", 0)),
            title=payload.get("title", ""),
            category=payload.get("category", ""),
            date=txn_date,
            next_appear_date=parse_stored_date(payload.get("nextAppearDate")),
            repeat_time=payload.get("repeatTime", "") or "",
        )


@dataclass(frozen=True)
class Category:
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Category":
        return cls(name=payload["name"])


BASE_CATEGORIES = tuple(Category(name) for name in BASE_CATEGORY_NAMES)


@dataclass
class TransactionsPage:
    current_page: int
    total_pages: int
    data: list[Transaction]

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "data": [txn.to_dict() for txn in self.data],
        }


@dataclass(frozen=True)
class GeneralStatistics:
    income: Decimal
    expenses: Decimal
    balance: Decimal


@dataclass(frozen=True)
class SpendingCurvePoint:
    date: str
    current_spending: Decimal
    # Same-date total across all history, not a mean.
    average_spending: Decimal


@dataclass
class Statistics:
    general_statistics: GeneralStatistics
    balance_changes_by_date: dict[str, Decimal]
    spending_curve_info: list[SpendingCurvePoint]
    from_date: str
    to_date: str

    def to_dict(self) -> dict[str, Any]:
        general = self.general_statistics
        return {
            "generalStatistics": {
                "income": amount_to_json(general.income),
                "expenses": amount_to_json(general.expenses),
                "balance": amount_to_json(general.balance),
            },
            "balanceChangesByDate": {
                day: amount_to_json(change)
                for day, change in self.balance_changes_by_date.items()
            },
            "spendingCurveInfo": [
                {
                    "averageSpending": amount_to_json(point.average_spending),
                    "currentSpending": amount_to_json(point.current_spending),
                    "date": point.date,
                }
                for point in self.spending_curve_info
            ],
            "fromDate": self.from_date,
            "toDate": self.to_date,
        }


@dataclass
class FinancialData:
    transactions: dict[str, dict[str, Transaction]] = field(default_factory=dict)
    categories: dict[str, list[Category]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FinancialData":
        transactions = {
            user_id: {
                txn_id: Transaction.from_dict({"id": txn_id, **raw})
                for txn_id, raw in (user_txns or {}).items()
            }
            for user_id, user_txns in (payload.get("transactions") or {}).items()
        }
        categories = {
            user_id: [Category.from_dict(raw) for raw in (user_categories or [])]
            for user_id, user_categories in (payload.get("categories") or {}).items()
        }
        return cls(transactions=transactions, categories=categories)
