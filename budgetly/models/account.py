from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Currency(str, Enum):
    GBP = "GBP"
    USD = "USD"
    EUR = "EUR"


class Account(Base):
    """A web-app account that can be bound to a single Telegram chat."""

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    monthly_budget: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("100"), nullable=False
    )
    currency: Mapped[Currency] = mapped_column(
        SqlEnum(Currency), default=Currency.GBP, nullable=False
    )

    telegram_chat_id: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    telegram_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    linking_code: Mapped[Optional[str]] = mapped_column(
        String(6), unique=True, nullable=True, index=True
    )
    linking_code_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    expenses: Mapped[list["Expense"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    @property
    def is_linked(self) -> bool:
        return self.telegram_chat_id is not None


from .expense import Expense  # noqa: E402
