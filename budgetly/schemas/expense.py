from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.expense import ExpenseCategory, ExpenseSource


class ExpenseCreate(BaseModel):
    """Payload for recording an expense from the web app.

    Amount and description are validated by the expense service so web and
    chat input share the same rules and messages.
    """

    amount: Decimal
    description: str
    category: Optional[ExpenseCategory] = None
    occurred_at: Optional[datetime] = None


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    description: str
    category: ExpenseCategory
    occurred_at: datetime
    source: ExpenseSource


class ExpenseReceiptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    expense_id: UUID
    amount: Decimal
    currency: str = Field(min_length=3, max_length=3)
    description: str
    category: ExpenseCategory
    source: ExpenseSource
