from datetime import date

from aggregation import total_of
from domain import Transaction
from filters import TransactionFilters, filter_transactions, filters_for_time_range


def _scenario() -> list[Transaction]:
    # Fetch order: date descending.
    return [
        Transaction("t3", "Birthday gift", 7500, date(2024, 2, 15), category_id="other", custom_category="Gifts"),
        Transaction("t2", "Groceries", 5000, date(2024, 2, 10), category_id="food"),
        Transaction("t1", "Dinner", 10000, date(2024, 1, 10), category_id="food"),
    ]


def test_empty_filters_are_identity():
    txns = _scenario()
    assert filter_transactions(txns, TransactionFilters()) == txns
    assert filter_transactions(txns, None) == txns
    assert total_of(filter_transactions(txns, TransactionFilters())) == total_of(txns)


def test_date_range_is_inclusive():
    txns = _scenario()
    result = filter_transactions(
        txns,
        TransactionFilters(date_from=date(2024, 2, 1), date_to=date(2024, 2, 28)),
    )
    assert [t.id for t in result] == ["t3", "t2"]
    assert total_of(result) == 125.0

    edges = filter_transactions(
        txns,
        TransactionFilters(date_from=date(2024, 2, 10), date_to=date(2024, 2, 15)),
    )
    assert [t.id for t in edges] == ["t3", "t2"]


def test_single_bound():
    txns = _scenario()
    assert [t.id for t in filter_transactions(txns, TransactionFilters(date_to=date(2024, 1, 31)))] == ["t1"]
    assert [t.id for t in filter_transactions(txns, TransactionFilters(date_from=date(2024, 2, 11)))] == ["t3"]


def test_category_and_dates_combine_with_and():
    txns = _scenario()
    result = filter_transactions(
        txns,
        TransactionFilters(category_id="food", date_from=date(2024, 2, 1)),
    )
    assert [t.id for t in result] == ["t2"]


def test_category_filter_keeps_order():
    txns = _scenario()
    result = filter_transactions(txns, TransactionFilters(category_id="food"))
    assert [t.id for t in result] == ["t2", "t1"]


def test_filter_returns_new_list():
    txns = _scenario()
    result = filter_transactions(txns, TransactionFilters())
    result.pop()
    assert len(txns) == 3


def test_time_range_presets():
    today = date(2024, 3, 31)
    assert filters_for_time_range("7days", today=today).date_from == date(2024, 3, 24)
    assert filters_for_time_range("30days", today=today).date_from == date(2024, 3, 1)
    assert filters_for_time_range("all", today=today).date_from is None
    assert filters_for_time_range("bogus", today=today).date_from is None
    assert filters_for_time_range("year", today=date(2024, 2, 29)).date_from == date(2023, 2, 28)
