from dataclasses import dataclass
from typing import Iterable, Optional

from domain import Category, Transaction

OTHER_CATEGORY_ID = "other"
OTHER_LABEL = "Other"
UNKNOWN_LABEL = "Unknown"
FALLBACK_COLOR = "#94a3b8"

CUSTOM_PALETTE = (
    "#10b981",
    "#3b82f6",
    "#8b5cf6",
    "#f59e0b",
    "#ec4899",
    "#ef4444",
    "#06b6d4",
    "#6b7280",
)

DEFAULT_CATEGORIES = (
    Category("food", "Food & Dining", "#10b981"),
    Category("bills", "Bills & Utilities", "#3b82f6"),
    Category("entertainment", "Entertainment", "#8b5cf6"),
    Category("transportation", "Transportation", "#f59e0b"),
    Category("shopping", "Shopping", "#ec4899"),
    Category("health", "Health & Medical", "#ef4444"),
    Category("travel", "Travel", "#06b6d4"),
    Category(OTHER_CATEGORY_ID, OTHER_LABEL, "#6b7280"),
)


@dataclass(frozen=True)
class ResolvedCategory:
    name: str
    color: str
    is_custom: bool


def is_custom_category(category_id: Optional[str]) -> bool:
    return category_id == OTHER_CATEGORY_ID


def custom_label(custom_category: Optional[str]) -> str:
    label = (custom_category or "").strip()
    return label or OTHER_LABEL


def picker_categories(categories: Iterable[Category]) -> list[Category]:
    return [c for c in categories if not is_custom_category(c.id)]


class CategoryResolver:
    """Resolve a transaction's category reference to a display name and color.

    Custom ("Other") labels get palette colors in the order they are first
    seen by this instance, so a fresh resolver should be used per
    aggregation pass.
    """

    def __init__(self, categories: Iterable[Category]) -> None:
        self._by_id = {c.id: c for c in categories}
        self._custom_colors: dict[str, str] = {}

    def resolve(self, txn: Transaction) -> ResolvedCategory:
        if is_custom_category(txn.category_id):
            name = custom_label(txn.custom_category)
            return ResolvedCategory(name, self._custom_color(name), True)

        category = self._by_id.get(txn.category_id) if txn.category_id else None
        if category is None:
            return ResolvedCategory(UNKNOWN_LABEL, FALLBACK_COLOR, False)
        return ResolvedCategory(category.name, category.color or FALLBACK_COLOR, False)

    def _custom_color(self, name: str) -> str:
        color = self._custom_colors.get(name)
        if color is None:
            color = CUSTOM_PALETTE[len(self._custom_colors) % len(CUSTOM_PALETTE)]
            self._custom_colors[name] = color
        return color
