from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models.expense import ExpenseCategory

# Checked in insertion order; the first category with a matching keyword wins,
# so "gas" lands in Transport before Bills is consulted.
CATEGORY_KEYWORDS: dict[ExpenseCategory, tuple[str, ...]] = {
    ExpenseCategory.FOOD: (
        "coffee", "tea", "latte", "cappuccino", "espresso", "lunch", "dinner",
        "breakfast", "snack", "drink", "food", "meal", "burger", "pizza",
        "sandwich", "restaurant", "groceries", "market", "sushi", "chicken", "salad",
    ),
    ExpenseCategory.TRANSPORT: (
        "bus", "train", "taxi", "uber", "cab", "bolt", "flight", "ticket", "fuel",
        "petrol", "gas", "transport", "subway", "metro", "parking",
    ),
    ExpenseCategory.ENTERTAINMENT: (
        "movie", "cinema", "netflix", "spotify", "game", "concert", "party", "event",
        "fun", "subscription", "club", "bowling",
    ),
    ExpenseCategory.SHOPPING: (
        "clothes", "shoes", "shirt", "pants", "dress", "bag", "amazon", "gift",
        "shopping", "buy", "electronics",
    ),
    ExpenseCategory.BILLS: (
        "rent", "bill", "electricity", "water", "gas", "internet", "wifi", "phone",
        "mobile", "tax", "insurance", "utility",
    ),
}


def classify(
    description: str,
    keywords: Mapping[ExpenseCategory, Sequence[str]] | None = None,
) -> ExpenseCategory:
    """Pick a category for ``description`` by case-insensitive substring match."""
    lowered = description.lower()
    for category, words in (keywords or CATEGORY_KEYWORDS).items():
        if any(word in lowered for word in words):
            return category
    return ExpenseCategory.OTHER
