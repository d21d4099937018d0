import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from categories import FALLBACK_COLOR, is_custom_category
from domain import Category, Transaction
from models import TransactionType
from schemas import CategoryRow, ExpenseRow, IncomeRow

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """A store row that cannot be turned into a typed entity."""

    def __init__(self, table: str, row_id: object, detail: str) -> None:
        super().__init__(f"{table} row {row_id!r}: {detail}")
        self.table = table
        self.row_id = row_id
        self.detail = detail


def _validate(model, table: str, raw: Mapping[str, Any]):
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}"
            for err in exc.errors()
        )
        row_id = raw.get("id") if isinstance(raw, Mapping) else None
        raise ValidationError(table, row_id, errors) from exc


def expense_from_row(raw: Mapping[str, Any]) -> Transaction:
    row = _validate(ExpenseRow, "expenses", raw)
    custom = None
    if is_custom_category(row.category_id):
        custom = (row.custom_category or "").strip() or None
    return Transaction(
        id=row.id,
        description=row.description,
        amount_cents=row.amount_cents,
        date=row.date,
        kind=TransactionType.expense,
        category_id=row.category_id or None,
        custom_category=custom,
    )


def income_from_row(raw: Mapping[str, Any]) -> Transaction:
    row = _validate(IncomeRow, "incomes", raw)
    return Transaction(
        id=row.id,
        description=row.description,
        amount_cents=row.amount_cents,
        date=row.date,
        kind=TransactionType.income,
        source=(row.source or "").strip() or None,
    )


def category_from_row(raw: Mapping[str, Any]) -> Category:
    row = _validate(CategoryRow, "categories", raw)
    return Category(id=row.id, name=row.name.strip(), color=row.color or FALLBACK_COLOR)


def _convert_all(rows: Iterable[Mapping[str, Any]], convert, table: str) -> list:
    items = []
    skipped = 0
    for raw in rows:
        try:
            items.append(convert(raw))
        except ValidationError as exc:
            skipped += 1
            logger.warning(f"row_skipped: table={table} reason={exc}")
    if skipped:
        logger.info(f"rows_transformed: table={table} kept={len(items)} skipped={skipped}")
    return items


def expenses_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Transaction]:
    return _convert_all(rows, expense_from_row, "expenses")


def incomes_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Transaction]:
    return _convert_all(rows, income_from_row, "incomes")


def categories_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Category]:
    return _convert_all(rows, category_from_row, "categories")
