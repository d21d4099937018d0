"""Pure projections over a transaction collection.

Every function accepts an empty collection and returns the zero value for
its metric. Sums are taken over integer cents so category slices always add
up to the collection total.
"""

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from categories import CategoryResolver
from domain import (
    Category,
    CategorySlice,
    MonthBucket,
    MonthComparison,
    Transaction,
    TrendDelta,
    cents_to_amount,
)
from periods import MonthKey, month_window

logger = logging.getLogger(__name__)

DASHBOARD_MONTHS = 6
COMPARISON_MONTHS = 12
TREND_WINDOW = 5


def countable(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Drop rows with a non-positive amount; they would corrupt the sums."""
    kept: list[Transaction] = []
    for txn in transactions:
        if txn.amount_cents <= 0:
            logger.debug(
                f"aggregation_skip: id={txn.id} amount_cents={txn.amount_cents}"
            )
            continue
        kept.append(txn)
    return kept


def total_cents(transactions: Iterable[Transaction]) -> int:
    return sum(txn.amount_cents for txn in countable(transactions))


def total_of(transactions: Iterable[Transaction]) -> float:
    return cents_to_amount(total_cents(transactions))


def average_of(transactions: Iterable[Transaction]) -> float:
    items = countable(transactions)
    if not items:
        return 0.0
    return cents_to_amount(sum(txn.amount_cents for txn in items)) / len(items)


def category_slices(
    transactions: Iterable[Transaction], categories: Iterable[Category]
) -> list[CategorySlice]:
    resolver = CategoryResolver(categories)
    totals: dict[tuple[bool, str], int] = {}
    meta: dict[tuple[bool, str], tuple[Optional[str], str]] = {}

    for txn in countable(transactions):
        resolved = resolver.resolve(txn)
        key = (resolved.is_custom, resolved.name)
        if key not in totals:
            totals[key] = 0
            category_id = None if resolved.is_custom else txn.category_id
            meta[key] = (category_id, resolved.color)
        totals[key] += txn.amount_cents

    slices = [
        CategorySlice(
            category_id=meta[key][0],
            name=key[1],
            color=meta[key][1],
            total_cents=amount,
            is_custom=key[0],
        )
        for key, amount in totals.items()
    ]
    # Stable: equal totals keep first-encounter order.
    slices.sort(key=lambda s: (s.is_custom, -s.total_cents))
    return slices


def top_category(
    transactions: Iterable[Transaction], categories: Iterable[Category]
) -> Optional[CategorySlice]:
    slices = category_slices(transactions, categories)
    return slices[0] if slices else None


def _month_label(key: MonthKey, *, with_year: bool = False) -> str:
    fmt = "%b %y" if with_year else "%b"
    return key.first_day().strftime(fmt)


def month_buckets(
    transactions: Iterable[Transaction],
    months: int = DASHBOARD_MONTHS,
    *,
    today: Optional[date] = None,
) -> list[MonthBucket]:
    window = month_window(months, today=today)
    totals = {key: 0 for key in window}
    for txn in countable(transactions):
        key = MonthKey.of(txn.date)
        if key in totals:
            totals[key] += txn.amount_cents
    return [
        MonthBucket(key.year, key.month, _month_label(key), totals[key])
        for key in window
    ]


def _sorted_recent_first(transactions: Sequence[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda txn: txn.date, reverse=True)


def trend_delta(
    transactions: Iterable[Transaction], window: int = TREND_WINDOW
) -> TrendDelta:
    items = countable(transactions)
    if len(items) < 2:
        return TrendDelta.from_percent(0.0)

    ordered = _sorted_recent_first(items)
    recent = ordered[:window]
    previous = ordered[window : window * 2]
    if not previous:
        return TrendDelta.from_percent(0.0)

    recent_avg = sum(txn.amount_cents for txn in recent) / len(recent)
    previous_avg = sum(txn.amount_cents for txn in previous) / len(previous)
    if previous_avg == 0:
        return TrendDelta.from_percent(0.0)
    return TrendDelta.from_percent((recent_avg - previous_avg) / previous_avg * 100)


def income_expense_by_month(
    expenses: Iterable[Transaction],
    incomes: Iterable[Transaction],
    months: int = COMPARISON_MONTHS,
    *,
    today: Optional[date] = None,
) -> list[MonthComparison]:
    window = month_window(months, today=today)
    expense_totals = {key: 0 for key in window}
    income_totals = {key: 0 for key in window}

    for totals, source in ((expense_totals, expenses), (income_totals, incomes)):
        for txn in countable(source):
            key = MonthKey.of(txn.date)
            if key in totals:
                totals[key] += txn.amount_cents

    return [
        MonthComparison(
            year=key.year,
            month=key.month,
            label=_month_label(key, with_year=True),
            income_cents=income_totals[key],
            expense_cents=expense_totals[key],
        )
        for key in window
    ]


def totals_summary(
    expenses: Iterable[Transaction], incomes: Iterable[Transaction]
) -> dict[str, object]:
    expense_items = countable(expenses)
    income_items = countable(incomes)
    expense = sum(txn.amount_cents for txn in expense_items)
    income = sum(txn.amount_cents for txn in income_items)
    return {
        "income": cents_to_amount(income),
        "expenses": cents_to_amount(expense),
        "profit": cents_to_amount(income - expense),
        "income_count": len(income_items),
        "expense_count": len(expense_items),
    }
