from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from domain import Transaction
from periods import time_range_start


@dataclass(frozen=True)
class TransactionFilters:
    category_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def matches(self, txn: Transaction) -> bool:
        if self.category_id and txn.category_id != self.category_id:
            return False
        if self.date_from is not None and txn.date < self.date_from:
            return False
        if self.date_to is not None and txn.date > self.date_to:
            return False
        return True


def filter_transactions(
    transactions: Iterable[Transaction], filters: Optional[TransactionFilters] = None
) -> list[Transaction]:
    if filters is None:
        return list(transactions)
    return [txn for txn in transactions if filters.matches(txn)]


def filters_for_time_range(
    slug: Optional[str], *, today: Optional[date] = None
) -> TransactionFilters:
    return TransactionFilters(date_from=time_range_start(slug, today=today))
