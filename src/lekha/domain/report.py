"""Report aggregation over a book's transactions.

Each report is a single pass over an in-memory list; nothing is cached or
persisted between calls.
"""

from collections import defaultdict
from datetime import date
from enum import Enum
from typing import Any, Optional, Sequence

from lekha.database.base import Database
from lekha.domain.entities import (
    Book,
    CashFlowSummary,
    CategoryShare,
    CustomGroup,
    MonthlyTotals,
    PartyBalance,
    Transaction,
    TransactionType,
)
from lekha.domain.errors import NotFoundError, book_not_found
from lekha.utils.date_parser import get_date_range

UNCATEGORIZED = "Uncategorized"
UNKNOWN_GROUP = "Unknown"


def filter_by_period(
    transactions: Sequence[Transaction], start_date: Optional[date], end_date: Optional[date]
) -> list[Transaction]:
    """Keep transactions whose date falls inside an inclusive, open-ended range."""
    return [
        t
        for t in transactions
        if (start_date is None or t.transaction_date >= start_date)
        and (end_date is None or t.transaction_date <= end_date)
    ]


def cash_flow(transactions: Sequence[Transaction]) -> CashFlowSummary:
    """Sum income and expense; transfers count toward neither."""
    income = 0.0
    expense = 0.0
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += float(t.amount)
        elif t.type == TransactionType.EXPENSE:
            expense += float(t.amount)
    return CashFlowSummary(income=income, expense=expense)


def category_breakdown(transactions: Sequence[Transaction]) -> list[CategoryShare]:
    """Group expenses by category with each category's share of the total.

    Returns:
        Categories sorted by amount, largest first
    """
    totals: dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.type == TransactionType.EXPENSE:
            totals[t.category_id or UNCATEGORIZED] += float(t.amount)

    grand_total = sum(totals.values())
    shares = [
        CategoryShare(
            category=category,
            amount=amount,
            percentage=(amount / grand_total * 100) if grand_total else 0.0,
        )
        for category, amount in totals.items()
    ]
    return sorted(shares, key=lambda s: s.amount, reverse=True)


def monthly_trends(transactions: Sequence[Transaction]) -> list[MonthlyTotals]:
    """Income and expense per calendar month, oldest month first.

    Ratios are relative to the largest income or expense of any month.
    """
    months: dict[str, list[float]] = defaultdict(lambda: [0.0, 0.0])
    for t in transactions:
        bucket = months[t.transaction_date.strftime("%Y-%m")]
        if t.type == TransactionType.INCOME:
            bucket[0] += float(t.amount)
        elif t.type == TransactionType.EXPENSE:
            bucket[1] += float(t.amount)

    peak = max((value for pair in months.values() for value in pair), default=0.0)

    def ratio(value: float) -> float:
        return value / peak if peak else 0.0

    return [
        MonthlyTotals(
            month=month,
            income=income,
            expense=expense,
            income_ratio=ratio(income),
            expense_ratio=ratio(expense),
        )
        for month, (income, expense) in sorted(months.items())
    ]


def party_ledger(transactions: Sequence[Transaction]) -> list[PartyBalance]:
    """Amounts paid to and received from each party.

    Transactions without a party are left out.

    Returns:
        Parties sorted by paid plus received, largest first
    """
    parties: dict[str, list[float]] = {}
    for t in transactions:
        if not t.party_id:
            continue
        bucket = parties.setdefault(t.party_id, [0.0, 0.0])
        if t.type == TransactionType.EXPENSE:
            bucket[0] += float(t.amount)
        elif t.type == TransactionType.INCOME:
            bucket[1] += float(t.amount)

    balances = [
        PartyBalance(party=p, paid=paid, received=received)
        for p, (paid, received) in parties.items()
    ]
    return sorted(balances, key=lambda b: b.paid + b.received, reverse=True)


def _group_label(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def custom_grouping(transactions: Sequence[Transaction], field_key: str) -> list[CustomGroup]:
    """Group by any field, summing the raw amount of every transaction.

    The group value is read from ``custom_data`` first, then from the
    transaction attribute of the same name; missing or blank values fall
    into "Unknown". Income and expense amounts are added together.

    Returns:
        Groups sorted by amount, largest first
    """
    groups: dict[str, list] = {}
    for t in transactions:
        value = t.custom_data.get(field_key)
        if value is None or value == "":
            value = getattr(t, field_key, None)
        if value is None or value == "":
            value = UNKNOWN_GROUP
        bucket = groups.setdefault(_group_label(value), [0.0, 0])
        bucket[0] += float(t.amount)
        bucket[1] += 1

    result = [
        CustomGroup(value=v, amount=amount, count=count)
        for v, (amount, count) in groups.items()
    ]
    return sorted(result, key=lambda g: g.amount, reverse=True)


def display_amount(book: Book, transaction: Transaction) -> float:
    """Amount of a transaction as the book's primary amount field reports it.

    A custom primary field wins when the transaction has a numeric value
    for it; otherwise the core amount is used.
    """
    key = book.primary_amount_field
    if key and key in transaction.custom_data and transaction.custom_data[key] is not None:
        value = transaction.custom_data[key]
        if not isinstance(value, bool):
            try:
                return float(value)
            except (TypeError, ValueError):
                pass
    return float(transaction.amount)


def dashboard_total(book: Book, transactions: Sequence[Transaction]) -> CashFlowSummary:
    """Income, expense and balance of a book using its primary amount field."""
    income = 0.0
    expense = 0.0
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += display_amount(book, t)
        elif t.type == TransactionType.EXPENSE:
            expense += display_amount(book, t)
    return CashFlowSummary(income=income, expense=expense)


class ReportService:
    """Loads a book's transactions and runs reports over a period."""

    def __init__(self, db: Database):
        """Initialize report service.

        Args:
            db: Database instance
        """
        self.db = db

    def _load(self, book_id: str, period: str = "all") -> tuple[Book, list[Transaction]]:
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError(book_not_found(book_id))
        start_date, end_date = get_date_range(period)
        return book, filter_by_period(self.db.list_transactions(book_id), start_date, end_date)

    def cash_flow(self, book_id: str, period: str = "this-month") -> CashFlowSummary:
        return cash_flow(self._load(book_id, period)[1])

    def category_breakdown(self, book_id: str, period: str = "this-month") -> list[CategoryShare]:
        return category_breakdown(self._load(book_id, period)[1])

    def monthly_trends(self, book_id: str, period: str = "this-month") -> list[MonthlyTotals]:
        return monthly_trends(self._load(book_id, period)[1])

    def party_ledger(self, book_id: str, period: str = "this-month") -> list[PartyBalance]:
        return party_ledger(self._load(book_id, period)[1])

    def custom_grouping(
        self, book_id: str, field_key: str, period: str = "this-month"
    ) -> list[CustomGroup]:
        return custom_grouping(self._load(book_id, period)[1], field_key)

    def dashboard(self, book_id: str) -> CashFlowSummary:
        """All-time totals of a book using its primary amount field."""
        book, transactions = self._load(book_id)
        return dashboard_total(book, transactions)

    def recent_transactions(self, book_id: str, limit: int = 5) -> list[Transaction]:
        """Most recent transactions of a book by date."""
        _, transactions = self._load(book_id)
        return sorted(transactions, key=lambda t: t.transaction_date, reverse=True)[:limit]
