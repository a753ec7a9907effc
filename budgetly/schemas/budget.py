from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from ..models.expense import ExpenseCategory
from ..services.budget import BudgetTier, BudgetWindow


class CategoryTotalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: ExpenseCategory
    total: Decimal
    count: int


class BudgetStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    window: BudgetWindow
    window_start: datetime
    spent: Decimal
    budget: Decimal
    remaining: Decimal
    count: int
    average: Decimal
    percentage: Decimal
    tier: BudgetTier
    currency: str
    categories: list[CategoryTotalRead] = []


class BudgetUpdate(BaseModel):
    monthly_budget: Decimal


class BudgetSettingsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    monthly_budget: Decimal
    currency: str
