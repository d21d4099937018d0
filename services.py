from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from aggregation import (
    average_of,
    category_slices,
    income_expense_by_month,
    month_buckets,
    total_of,
    totals_summary,
    trend_delta,
)
from categories import (
    DEFAULT_CATEGORIES,
    CategoryResolver,
    is_custom_category,
    picker_categories,
)
from config import Settings, get_settings
from datasource import DataSource
from domain import CategorySlice, MonthBucket, Transaction
from filters import TransactionFilters, filter_transactions, filters_for_time_range
from periods import TIME_RANGES, local_today
from schemas import CategoryIn, ExpenseIn, IncomeIn, amount_to_cents
from sync import SyncCoordinator

logger = logging.getLogger(__name__)


class RecordNotFound(ValueError):
    pass


def _slice_payload(item: CategorySlice) -> dict[str, object]:
    return {
        "category_id": item.category_id,
        "name": item.name,
        "color": item.color,
        "total": item.total,
        "is_custom": item.is_custom,
    }


def _bucket_payload(item: MonthBucket) -> dict[str, object]:
    return {
        "year": item.year,
        "month": item.month,
        "label": item.label,
        "total": item.total,
    }


def _expense_payload(txn: Transaction, resolver: CategoryResolver) -> dict[str, object]:
    resolved = resolver.resolve(txn)
    return {
        "id": txn.id,
        "description": txn.description,
        "amount": txn.amount,
        "date": txn.date.isoformat(),
        "category_id": txn.category_id,
        "custom_category": txn.custom_category,
        "category_name": resolved.name,
        "category_color": resolved.color,
        "is_custom": resolved.is_custom,
    }


def _income_payload(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "description": txn.description,
        "amount": txn.amount,
        "date": txn.date.isoformat(),
        "source": txn.source,
    }


class DashboardService:
    """Read side: projections over the coordinator's current snapshot."""

    def __init__(
        self, coordinator: SyncCoordinator, settings: Optional[Settings] = None
    ) -> None:
        self.coordinator = coordinator
        self.settings = settings or get_settings()

    def status(self) -> dict[str, object]:
        snapshot = self.coordinator.snapshot()
        return {
            "loading": snapshot.is_loading,
            "error": snapshot.has_error,
            "collections": snapshot.status,
        }

    def categories(self) -> list[dict[str, object]]:
        snapshot = self.coordinator.snapshot()
        return [
            {"id": c.id, "name": c.name, "color": c.color}
            for c in picker_categories(snapshot.categories)
        ]

    def expenses(self, filters: Optional[TransactionFilters] = None) -> list[dict[str, object]]:
        snapshot = self.coordinator.snapshot()
        resolver = CategoryResolver(snapshot.categories)
        return [
            _expense_payload(txn, resolver)
            for txn in filter_transactions(snapshot.expenses, filters)
        ]

    def incomes(self) -> dict[str, object]:
        snapshot = self.coordinator.snapshot()
        return {
            "items": [_income_payload(txn) for txn in snapshot.incomes],
            "total": total_of(snapshot.incomes),
            "count": len(snapshot.incomes),
        }

    def overview(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        today: Optional[date] = None,
    ) -> dict[str, object]:
        today = today or local_today()
        snapshot = self.coordinator.snapshot()
        expenses = filter_transactions(snapshot.expenses, filters)
        slices = category_slices(expenses, snapshot.categories)
        trend = trend_delta(expenses, self.settings.trend_window)
        return {
            "total": total_of(expenses),
            "count": len(expenses),
            "average": average_of(expenses),
            "trend": {"percent": trend.percent, "direction": trend.direction.value},
            "top_category": _slice_payload(slices[0]) if slices else None,
            "active_categories": len(slices),
            "categories": [_slice_payload(s) for s in slices],
            "months": [
                _bucket_payload(b)
                for b in month_buckets(
                    expenses, self.settings.dashboard_months, today=today
                )
            ],
            "loading": snapshot.is_loading,
            "error": snapshot.has_error,
        }

    def analytics(
        self, time_range: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        today = today or local_today()
        if time_range not in TIME_RANGES:
            time_range = "all"
        snapshot = self.coordinator.snapshot()
        expenses = filter_transactions(
            snapshot.expenses, filters_for_time_range(time_range, today=today)
        )
        slices = category_slices(expenses, snapshot.categories)
        return {
            "range": time_range,
            "total": total_of(expenses),
            "count": len(expenses),
            "average": average_of(expenses),
            "top_category": _slice_payload(slices[0]) if slices else None,
            "categories": [_slice_payload(s) for s in slices],
            "months": [
                _bucket_payload(b)
                for b in month_buckets(
                    expenses, self.settings.dashboard_months, today=today
                )
            ],
        }

    def comparison(self, *, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        snapshot = self.coordinator.snapshot()
        rows = income_expense_by_month(
            snapshot.expenses,
            snapshot.incomes,
            self.settings.comparison_months,
            today=today,
        )
        return {
            "months": [
                {
                    "year": row.year,
                    "month": row.month,
                    "label": row.label,
                    "income": row.income,
                    "expense": row.expense,
                    "profit": row.profit,
                }
                for row in rows
            ],
            "totals": totals_summary(snapshot.expenses, snapshot.incomes),
        }


class CategoryService:
    def __init__(self, source: DataSource) -> None:
        self.source = source

    async def list_all(self) -> list[dict[str, Any]]:
        return await self.source.fetch_all("categories", order_by="name")

    async def _ensure_unique_name(
        self, name: str, *, exclude_id: Optional[str] = None
    ) -> None:
        for row in await self.list_all():
            if row["id"] == exclude_id:
                continue
            if str(row["name"]).strip().lower() == name.lower():
                raise ValueError("Category with this name already exists")

    async def create(self, data: CategoryIn) -> dict[str, Any]:
        name = data.name.strip()
        await self._ensure_unique_name(name)
        row = await self.source.insert(
            "categories", {"name": name, "color": data.color.lower()}
        )
        logger.info(f"category_created: id={row['id']} name={name}")
        return row

    async def update(self, category_id: str, data: CategoryIn) -> dict[str, Any]:
        if is_custom_category(category_id):
            raise ValueError("The Other category is reserved")
        name = data.name.strip()
        await self._ensure_unique_name(name, exclude_id=category_id)
        row = await self.source.update(
            "categories", category_id, {"name": name, "color": data.color.lower()}
        )
        if row is None:
            raise RecordNotFound("Category not found")
        return row

    async def delete(self, category_id: str) -> None:
        if is_custom_category(category_id):
            raise ValueError("The Other category is reserved")
        if not await self.source.delete("categories", category_id):
            raise RecordNotFound("Category not found")
        logger.info(f"category_deleted: id={category_id}")

    async def seed_defaults(self) -> int:
        if await self.list_all():
            return 0
        for category in DEFAULT_CATEGORIES:
            await self.source.insert(
                "categories",
                {"id": category.id, "name": category.name, "color": category.color},
            )
        logger.info(f"categories_seeded: count={len(DEFAULT_CATEGORIES)}")
        return len(DEFAULT_CATEGORIES)


class ExpenseService:
    def __init__(self, source: DataSource) -> None:
        self.source = source

    async def _values(self, data: ExpenseIn) -> dict[str, Any]:
        category_id = data.category_id.strip()
        if not is_custom_category(category_id):
            known = {row["id"] for row in await CategoryService(self.source).list_all()}
            if category_id not in known:
                raise ValueError("Category not found")
        custom = None
        if is_custom_category(category_id):
            custom = (data.custom_category or "").strip() or None
        return {
            "description": data.description,
            "amount_cents": amount_to_cents(data.amount),
            "category_id": category_id,
            "custom_category": custom,
            "date": data.date,
        }

    async def create(self, data: ExpenseIn) -> dict[str, Any]:
        row = await self.source.insert("expenses", await self._values(data))
        logger.info(f"expense_created: id={row['id']} amount_cents={row['amount_cents']}")
        return row

    async def update(self, expense_id: str, data: ExpenseIn) -> dict[str, Any]:
        row = await self.source.update("expenses", expense_id, await self._values(data))
        if row is None:
            raise RecordNotFound("Expense not found")
        return row

    async def delete(self, expense_id: str) -> None:
        if not await self.source.delete("expenses", expense_id):
            raise RecordNotFound("Expense not found")


class IncomeService:
    def __init__(self, source: DataSource) -> None:
        self.source = source

    @staticmethod
    def _values(data: IncomeIn) -> dict[str, Any]:
        return {
            "description": data.description,
            "amount_cents": amount_to_cents(data.amount),
            "source": (data.source or "").strip() or None,
            "date": data.date,
        }

    async def create(self, data: IncomeIn) -> dict[str, Any]:
        row = await self.source.insert("incomes", self._values(data))
        logger.info(f"income_created: id={row['id']} amount_cents={row['amount_cents']}")
        return row

    async def update(self, income_id: str, data: IncomeIn) -> dict[str, Any]:
        row = await self.source.update("incomes", income_id, self._values(data))
        if row is None:
            raise RecordNotFound("Income not found")
        return row

    async def delete(self, income_id: str) -> None:
        if not await self.source.delete("incomes", income_id):
            raise RecordNotFound("Income not found")
