from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from errors import Conflict, InvalidFormat, NotFound
from locks import ReadWriteLock
from models import (
    BASE_CATEGORIES,
    Category,
    GeneralStatistics,
    SpendingCurvePoint,
    Statistics,
    Transaction,
    TransactionsPage,
    parse_iso_date,
)
from periods import Period, resolve_period
from recurrence import (
    calculate_next_appear_date,
    local_today,
    normalized_date,
    validate_repeat_spec,
)
from schemas import CategoryIn, TransactionIn

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Moscow"


def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_transaction_date(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise InvalidFormat(f"invalid date format: {value!r}") from exc


def demo_transactions(today: date) -> dict[str, Transaction]:
    """Starter data every new user sees on first access."""
    transactions = [
        Transaction(
            id="c38bcbd2-e3c5-4a03-9001-bfcf763fbbdf",
            amount=Decimal("100"),
            title="Вода в зале",
            category="Еда",
            date=today - timedelta(days=2),
        ),
        Transaction(
            id="21867866-21d3-4846-bb5e-c56fbabec4f9",
            amount=Decimal("100"),
            title="Кино",
            category="Развлечения",
            date=today - timedelta(days=3),
        ),
        Transaction(
            id="a4075928-12c4-44e9-ac2a-0cf4230d4575",
            amount=Decimal("1000"),
            title="Зарплата",
            category="Доходы",
            date=today - timedelta(days=7),
            next_appear_date=normalized_date(today.year, today.month + 1, today.day),
            repeat_time=str(today.day),
        ),
    ]
    return {txn.id: txn for txn in transactions}


def _newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda txn: (txn.date, txn.id), reverse=True)


class TransactionService:
    """In-memory transaction store keyed by user id, then transaction id."""

    def __init__(
        self,
        initial_data: Optional[dict[str, dict[str, Transaction]]] = None,
        *,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.timezone = timezone
        self._lock = ReadWriteLock()
        self._transactions: dict[str, dict[str, Transaction]] = {
            user_id: {txn_id: replace(txn) for txn_id, txn in user_txns.items()}
            for user_id, user_txns in (initial_data or {}).items()
        }

    def _today(self) -> date:
        return local_today(self.timezone)

    def _seed_if_absent(self, user_id: str) -> None:
        # Caller must hold the write lock.
        if user_id not in self._transactions:
            self._transactions[user_id] = demo_transactions(self._today())
            logger.info(f"transactions_seeded: user_id={user_id}")

    def _ensure_user(self, user_id: str) -> None:
        with self._lock.read():
            if user_id in self._transactions:
                return
        # Another caller may seed between the two locks.
        with self._lock.write():
            self._seed_if_absent(user_id)

    def _filtered(
        self,
        user_id: str,
        from_date: Optional[date],
        to_date: Optional[date],
        categories: Optional[set[str]] = None,
    ) -> list[Transaction]:
        matched = []
        for txn in self._transactions.get(user_id, {}).values():
            if from_date is not None and txn.date < from_date:
                continue
            if to_date is not None and txn.date > to_date:
                continue
            if categories and txn.category not in categories:
                continue
            matched.append(replace(txn))
        return _newest_first(matched)

    def list(
        self,
        user_id: str,
        categories: Optional[Iterable[str]] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> TransactionsPage:
        if page < 1:
            raise InvalidFormat(f"invalid pagination parameter page: {page}")
        if page_size < 1:
            raise InvalidFormat(f"invalid pagination parameter pageSize: {page_size}")

        category_filter = {name for name in categories or () if name}
        self._ensure_user(user_id)
        with self._lock.read():
            matched = self._filtered(user_id, from_date, to_date, category_filter)

        total_pages = math.ceil(len(matched) / page_size)
        offset = (page - 1) * page_size
        return TransactionsPage(
            current_page=page,
            total_pages=total_pages,
            data=matched[offset : offset + page_size],
        )

    def all_for_period(
        self,
        user_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> list[Transaction]:
        self._ensure_user(user_id)
        with self._lock.read():
            return self._filtered(user_id, from_date, to_date)

    def _build(self, txn_id: str, data: TransactionIn) -> Transaction:
        txn_date = _parse_transaction_date(data.date)
        try:
            validate_repeat_spec(data.repeat_time)
        except InvalidFormat as exc:
            raise InvalidFormat(f"invalid repeat time format: {exc}") from exc

        next_appear_date = None
        if data.repeat_time:
            next_appear_date = calculate_next_appear_date(txn_date, data.repeat_time)
        return Transaction(
            id=txn_id,
            amount=data.amount,
            title=data.title,
            category=data.category,
            date=txn_date,
            next_appear_date=next_appear_date,
            repeat_time=data.repeat_time,
        )

    def create(self, user_id: str, data: TransactionIn) -> Transaction:
        txn = self._build(_new_id(), data)
        with self._lock.write():
            self._seed_if_absent(user_id)
            self._transactions[user_id][txn.id] = txn
        logger.info(f"transaction_created: user_id={user_id} id={txn.id}")
        return replace(txn)

    def get(self, user_id: str, transaction_id: str) -> Transaction:
        with self._lock.read():
            txn = self._transactions.get(user_id, {}).get(transaction_id)
            if txn is None:
                raise NotFound(f"transaction {transaction_id} not found")
            return replace(txn)

    def update(
        self, user_id: str, transaction_id: str, data: TransactionIn
    ) -> Transaction:
        txn = self._build(transaction_id, data)
        with self._lock.write():
            user_txns = self._transactions.get(user_id)
            if user_txns is None or transaction_id not in user_txns:
                raise NotFound(f"transaction {transaction_id} not found")
            user_txns[transaction_id] = txn
        return replace(txn)

    def delete(self, user_id: str, transaction_id: str) -> None:
        with self._lock.write():
            user_txns = self._transactions.get(user_id)
            if user_txns is None:
                return
            user_txns.pop(transaction_id, None)

    def materialize_recurrences(self, today: Optional[date] = None) -> int:
        """Spawn today's copies of recurring transactions.

        Each spawned copy carries the repeat spec forward with its own next
        date; the original loses its repeat spec so it never fires again.
        """
        today = today or self._today()
        spawned = 0
        with self._lock.write():
            for user_id, user_txns in self._transactions.items():
                due = [
                    txn
                    for txn in user_txns.values()
                    if txn.repeat_time and txn.next_appear_date == today
                ]
                for original in due:
                    copy = Transaction(
                        id=_new_id(),
                        amount=original.amount,
                        title=original.title,
                        category=original.category,
                        date=today,
                        # Strictly after today, or a day-of-month spec equal to
                        # today would fire again on the copy.
                        next_appear_date=calculate_next_appear_date(
                            today, original.repeat_time, strictly_after=True
                        ),
                        repeat_time=original.repeat_time,
                    )
                    user_txns[copy.id] = copy
                    original.repeat_time = ""
                    spawned += 1
                    logger.info(
                        f"recurrence_materialized: user_id={user_id} "
                        f"source_id={original.id} id={copy.id}"
                    )
        return spawned

    def get_backup_data(self) -> dict[str, dict[str, Transaction]]:
        with self._lock.read():
            return {
                user_id: {txn_id: replace(txn) for txn_id, txn in user_txns.items()}
                for user_id, user_txns in self._transactions.items()
            }

    def get_backup_file_name(self) -> str:
        return "transactions"


class CategoryService:
    def __init__(
        self, initial_data: Optional[dict[str, list[Category]]] = None
    ) -> None:
        self._lock = ReadWriteLock()
        self._base = list(BASE_CATEGORIES)
        self._categories: dict[str, list[Category]] = {
            user_id: list(categories)
            for user_id, categories in (initial_data or {}).items()
        }

    def list_all(self, user_id: str, name_filter: str = "") -> list[Category]:
        with self._lock.read():
            categories = self._base + self._categories.get(user_id, [])
        if not name_filter:
            return categories
        prefix = name_filter.lower()
        return [c for c in categories if c.name.lower().startswith(prefix)]

    def create(self, user_id: str, data: CategoryIn) -> Category:
        if not data.name.strip():
            raise InvalidFormat("category name cannot be empty")
        category = Category(name=data.name)
        wanted = data.name.lower()
        with self._lock.write():
            user_categories = self._categories.setdefault(user_id, [])
            if any(c.name.lower() == wanted for c in user_categories):
                raise Conflict(f"category with name '{data.name}' already exists")
            if any(c.name.lower() == wanted for c in self._base):
                raise Conflict(
                    f"category with name '{data.name}' already exists "
                    "in base categories"
                )
            user_categories.append(category)
        logger.info(f"category_created: user_id={user_id} name={data.name}")
        return category

    def get_backup_data(self) -> dict[str, list[Category]]:
        with self._lock.read():
            return {
                user_id: list(categories)
                for user_id, categories in self._categories.items()
            }

    def get_backup_file_name(self) -> str:
        return "categories"


class StatisticsService:
    def __init__(
        self, transactions: TransactionService, *, timezone: str = DEFAULT_TIMEZONE
    ) -> None:
        self.transactions = transactions
        self.timezone = timezone

    def get_statistics(
        self,
        user_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        *,
        today: Optional[date] = None,
    ) -> Statistics:
        period = resolve_period(
            from_date, to_date, today=today or local_today(self.timezone)
        )
        period_txns = self.transactions.all_for_period(
            user_id, period.start, period.end
        )
        history = self.transactions.all_for_period(user_id)

        return Statistics(
            general_statistics=self._general(period_txns),
            balance_changes_by_date=self._balance_changes(period_txns, period),
            spending_curve_info=self._spending_curve(period_txns, history, period),
            from_date=period.start.isoformat(),
            to_date=period.end.isoformat(),
        )

    @staticmethod
    def _general(transactions: list[Transaction]) -> GeneralStatistics:
        income = Decimal(0)
        expenses = Decimal(0)
        for txn in transactions:
            if txn.is_income:
                income += txn.amount
            else:
                expenses += txn.amount
        return GeneralStatistics(
            income=income, expenses=expenses, balance=income - expenses
        )

    @staticmethod
    def _balance_changes(
        transactions: list[Transaction], period: Period
    ) -> dict[str, Decimal]:
        changes = {day.isoformat(): Decimal(0) for day in period.days()}
        for txn in transactions:
            key = txn.date.isoformat()
            if txn.is_income:
                changes[key] += txn.amount
            else:
                changes[key] -= txn.amount
        return changes

    @staticmethod
    def _spending_curve(
        transactions: list[Transaction],
        history: list[Transaction],
        period: Period,
    ) -> list[SpendingCurvePoint]:
        history_by_date: dict[date, Decimal] = defaultdict(Decimal)
        for txn in history:
            if not txn.is_income:
                history_by_date[txn.date] += txn.amount

        current_by_date: dict[date, Decimal] = defaultdict(Decimal)
        for txn in transactions:
            if not txn.is_income:
                current_by_date[txn.date] += txn.amount

        return [
            SpendingCurvePoint(
                date=day.isoformat(),
                current_spending=current_by_date.get(day, Decimal(0)),
                average_spending=history_by_date.get(day, Decimal(0)),
            )
            for day in period.days()
        ]
