import asyncio
from datetime import date
from decimal import Decimal

import pytest

from categories import DEFAULT_CATEGORIES
from config import get_settings
from schemas import CategoryIn, ExpenseIn, IncomeIn
from services import (
    CategoryService,
    DashboardService,
    ExpenseService,
    IncomeService,
    RecordNotFound,
)
from sync import SyncCoordinator

TODAY = date(2024, 2, 20)


def _expense(tid, cents, on, category_id="food", custom=None):
    return {
        "id": tid,
        "description": f"Expense {tid}",
        "amount_cents": cents,
        "category_id": category_id,
        "custom_category": custom,
        "date": on,
    }


def _dashboard(source) -> DashboardService:
    async def build():
        coordinator = SyncCoordinator(source)
        await coordinator.start()
        await coordinator.aclose()
        return coordinator

    return DashboardService(asyncio.run(build()), get_settings())


def test_category_create_rejects_duplicate_names(fake_source):
    service = CategoryService(fake_source)

    async def scenario():
        row = await service.create(CategoryIn(name=" Travel ", color="#ABCDEF"))
        with pytest.raises(ValueError, match="already exists"):
            await service.create(CategoryIn(name="food & dining", color="#000000"))
        return row

    row = asyncio.run(scenario())
    assert row["name"] == "Travel"
    assert row["color"] == "#abcdef"


def test_category_update_keeps_own_name_and_reports_missing(fake_source):
    service = CategoryService(fake_source)

    async def scenario():
        row = await service.update("food", CategoryIn(name="Food & Dining", color="#111111"))
        with pytest.raises(RecordNotFound):
            await service.update("missing", CategoryIn(name="Nowhere", color="#111111"))
        with pytest.raises(RecordNotFound):
            await service.delete("missing")
        return row

    assert asyncio.run(scenario())["color"] == "#111111"


def test_other_category_is_reserved(fake_source):
    service = CategoryService(fake_source)

    async def scenario():
        with pytest.raises(ValueError, match="reserved"):
            await service.update("other", CategoryIn(name="Misc", color="#111111"))
        with pytest.raises(ValueError, match="reserved"):
            await service.delete("other")

    asyncio.run(scenario())
    assert any(r["id"] == "other" for r in fake_source.tables["categories"])


def test_seed_defaults_only_fills_an_empty_table(fake_source):
    async def scenario(source):
        return await CategoryService(source).seed_defaults()

    assert asyncio.run(scenario(fake_source)) == 0

    fake_source.tables["categories"] = []
    assert asyncio.run(scenario(fake_source)) == len(DEFAULT_CATEGORIES)
    ids = {r["id"] for r in fake_source.tables["categories"]}
    assert "other" in ids


def test_expense_requires_known_category(fake_source):
    service = ExpenseService(fake_source)
    payload = ExpenseIn(
        description="Taxi", amount=Decimal("12.30"), category_id="travel", date=TODAY
    )

    async def scenario():
        with pytest.raises(ValueError, match="Category not found"):
            await service.create(payload)

    asyncio.run(scenario())
    assert fake_source.tables["expenses"] == []


def test_expense_custom_label_only_kept_for_other(fake_source):
    service = ExpenseService(fake_source)

    async def scenario():
        custom = await service.create(
            ExpenseIn(
                description="Present",
                amount=Decimal("75"),
                category_id="other",
                custom_category=" Gifts ",
                date=TODAY,
            )
        )
        standard = await service.create(
            ExpenseIn(
                description="Bread",
                amount=Decimal("2.49"),
                category_id="food",
                custom_category="Bakery",
                date=TODAY,
            )
        )
        return custom, standard

    custom, standard = asyncio.run(scenario())
    assert custom["custom_category"] == "Gifts"
    assert custom["amount_cents"] == 7500
    assert standard["custom_category"] is None
    assert standard["amount_cents"] == 249


def test_expense_and_income_missing_rows(fake_source):
    payload = ExpenseIn(description="Taxi", amount=Decimal("1"), category_id="food", date=TODAY)
    income = IncomeIn(description="Salary", amount=Decimal("1"), date=TODAY)

    async def scenario():
        with pytest.raises(RecordNotFound):
            await ExpenseService(fake_source).update("missing", payload)
        with pytest.raises(RecordNotFound):
            await ExpenseService(fake_source).delete("missing")
        with pytest.raises(RecordNotFound):
            await IncomeService(fake_source).update("missing", income)
        with pytest.raises(RecordNotFound):
            await IncomeService(fake_source).delete("missing")

    asyncio.run(scenario())


def test_income_blank_source_is_stored_as_none(fake_source):
    async def scenario():
        return await IncomeService(fake_source).create(
            IncomeIn(description="Refund", amount=Decimal("10.50"), source="  ", date=TODAY)
        )

    row = asyncio.run(scenario())
    assert row["source"] is None
    assert row["amount_cents"] == 1050


def test_overview_totals_and_breakdown(fake_source):
    fake_source.tables["expenses"] = [
        _expense("t3", 7500, "2024-02-15", "other", "Gifts"),
        _expense("t2", 5000, "2024-02-10"),
        _expense("t1", 10000, "2024-01-10"),
    ]
    overview = _dashboard(fake_source).overview(today=TODAY)

    assert overview["total"] == 225.0
    assert overview["count"] == 3
    assert overview["average"] == pytest.approx(75.0)
    assert overview["top_category"]["name"] == "Food & Dining"
    assert overview["top_category"]["total"] == 150.0
    assert overview["active_categories"] == 2
    assert [c["name"] for c in overview["categories"]] == ["Food & Dining", "Gifts"]
    assert len(overview["months"]) == 6
    assert overview["months"][-1]["total"] == 125.0
    assert overview["trend"] == {"percent": 0.0, "direction": "flat"}
    assert overview["loading"] is False


def test_expenses_payload_resolves_names(fake_source):
    fake_source.tables["expenses"] = [
        _expense("a", 100, "2024-02-01", "gone"),
        _expense("b", 200, "2024-02-02", "other", "Pets"),
    ]
    items = _dashboard(fake_source).expenses()

    by_id = {item["id"]: item for item in items}
    assert by_id["a"]["category_name"] == "Unknown"
    assert by_id["a"]["category_color"] == "#94a3b8"
    assert by_id["b"]["category_name"] == "Pets"
    assert by_id["b"]["is_custom"] is True


def test_analytics_falls_back_to_all_time(fake_source):
    fake_source.tables["expenses"] = [
        _expense("recent", 1000, "2024-02-18"),
        _expense("old", 2000, "2023-01-01"),
    ]
    dashboard = _dashboard(fake_source)

    week = dashboard.analytics("7days", today=TODAY)
    assert week["range"] == "7days"
    assert week["total"] == 10.0

    everything = dashboard.analytics("decade", today=TODAY)
    assert everything["range"] == "all"
    assert everything["total"] == 30.0


def test_comparison_months_and_totals(fake_source):
    fake_source.tables["expenses"] = [_expense("e", 4000, "2024-02-01")]
    fake_source.tables["incomes"] = [
        {"id": "i", "description": "Salary", "amount_cents": 10000, "date": "2024-02-01"}
    ]
    comparison = _dashboard(fake_source).comparison(today=TODAY)

    assert len(comparison["months"]) == 12
    assert comparison["months"][-1]["profit"] == 60.0
    assert comparison["totals"]["profit"] == 60.0
    assert comparison["totals"]["income_count"] == 1
