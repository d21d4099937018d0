import datetime as dt
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


def amount_to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class _RowBase(BaseModel):
    """Shape of a transaction row as delivered by the store."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0)
    date: dt.date

    @model_validator(mode="before")
    @classmethod
    def _amount_from_decimal(cls, data):
        # Hosted backends hand out a numeric ``amount`` instead of cents.
        if isinstance(data, dict) and "amount_cents" not in data and "amount" in data:
            data = dict(data)
            try:
                data["amount_cents"] = amount_to_cents(Decimal(str(data["amount"])))
            except InvalidOperation as exc:
                raise ValueError(f"Invalid amount: {data['amount']!r}") from exc
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be blank")
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value):
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value


class ExpenseRow(_RowBase):
    category_id: Optional[str] = None
    custom_category: Optional[str] = None


class IncomeRow(_RowBase):
    source: Optional[str] = None


class CategoryRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    color: Optional[str] = None


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN)


class ExpenseIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category_id: str = Field(..., min_length=1, max_length=36)
    custom_category: Optional[str] = Field(default=None, max_length=100)
    date: dt.date

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Description is required")
        return value


class IncomeIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    source: Optional[str] = Field(default=None, max_length=200)
    date: dt.date

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Description is required")
        return value
