from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class ExpenseCategory(str, Enum):
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    OTHER = "Other"


class ExpenseSource(str, Enum):
    WEB = "web"
    CHAT = "chat"


class Expense(Base):
    """A single spend recorded against an account's monthly budget."""

    __tablename__ = "expenses"

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        SqlEnum(ExpenseCategory), default=ExpenseCategory.OTHER, nullable=False
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    source: Mapped[ExpenseSource] = mapped_column(
        SqlEnum(ExpenseSource), default=ExpenseSource.WEB, nullable=False
    )

    account: Mapped["Account"] = relationship(back_populates="expenses")


from .account import Account  # noqa: E402  # avoid circular import at runtime
