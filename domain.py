from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from models import TransactionType


def cents_to_amount(cents: int) -> float:
    return cents / 100


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class Transaction:
    id: str
    description: str
    amount_cents: int
    date: date
    kind: TransactionType = TransactionType.expense
    category_id: Optional[str] = None
    custom_category: Optional[str] = None
    source: Optional[str] = None

    @property
    def amount(self) -> float:
        return cents_to_amount(self.amount_cents)


@dataclass(frozen=True)
class CategorySlice:
    category_id: Optional[str]
    name: str
    color: str
    total_cents: int
    is_custom: bool

    @property
    def total(self) -> float:
        return cents_to_amount(self.total_cents)


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    label: str
    total_cents: int

    @property
    def total(self) -> float:
        return cents_to_amount(self.total_cents)


@dataclass(frozen=True)
class MonthComparison:
    year: int
    month: int
    label: str
    income_cents: int
    expense_cents: int

    @property
    def profit_cents(self) -> int:
        return self.income_cents - self.expense_cents

    @property
    def income(self) -> float:
        return cents_to_amount(self.income_cents)

    @property
    def expense(self) -> float:
        return cents_to_amount(self.expense_cents)

    @property
    def profit(self) -> float:
        return cents_to_amount(self.profit_cents)


class TrendDirection(str, Enum):
    up = "up"
    down = "down"
    flat = "flat"


@dataclass(frozen=True)
class TrendDelta:
    percent: float
    direction: TrendDirection

    @classmethod
    def from_percent(cls, percent: float) -> "TrendDelta":
        if percent > 0:
            return cls(percent, TrendDirection.up)
        if percent < 0:
            return cls(percent, TrendDirection.down)
        return cls(0.0, TrendDirection.flat)
