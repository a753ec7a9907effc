from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.account import Account
from ..models.expense import Expense, ExpenseCategory, ExpenseSource
from .accounts import require_linked_account
from .categories import classify

MAX_DESCRIPTION_LENGTH = 200
MIN_AMOUNT = Decimal("0.01")

_TAG_RE = re.compile(r"<[^>]*>")


class ExpenseValidationError(ValueError):
    """Base class for user input problems when recording an expense."""


class InvalidAmountError(ExpenseValidationError):
    """Raised when the amount is not a positive number within the allowed ceiling."""


class InvalidDescriptionError(ExpenseValidationError):
    """Raised when the description is empty."""


class DescriptionTooLongError(ExpenseValidationError):
    """Raised when the description exceeds the maximum length."""


class ExpenseNotFoundError(Exception):
    """Raised when an expense cannot be found for the requesting account."""


@dataclass(frozen=True)
class ExpenseReceipt:
    expense_id: UUID
    amount: Decimal
    currency: str
    description: str
    category: ExpenseCategory
    source: ExpenseSource


def parse_amount(raw: str | Decimal | None) -> Decimal:
    """Parse and bound-check an amount, rounding to whole pence/cents."""

    if isinstance(raw, Decimal):
        value = raw
    else:
        text = (raw or "").strip().replace(",", "")
        try:
            value = Decimal(text)
        except (InvalidOperation, ValueError) as exc:
            raise InvalidAmountError(f"Invalid amount '{raw}'.") from exc
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount '{raw}'.")
    if value > get_settings().max_expense_amount:
        raise InvalidAmountError("Amount is above the allowed maximum.")
    if value <= 0:
        raise InvalidAmountError("Amount must be greater than 0.")
    value = value.quantize(Decimal("0.01"))
    if value < MIN_AMOUNT:
        raise InvalidAmountError("Amount must be greater than 0.")
    return value


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def clean_description(raw: str | None) -> str:
    description = (raw or "").strip()
    if not description:
        raise InvalidDescriptionError("Description cannot be empty.")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise DescriptionTooLongError(
            f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)."
        )
    description = strip_tags(description).strip()
    if not description:
        raise InvalidDescriptionError("Description cannot be empty.")
    return description


async def add_expense(
    session: AsyncSession,
    account: Account,
    amount_text: str | Decimal | None,
    description: str | None,
    source: ExpenseSource,
    *,
    category: Optional[ExpenseCategory] = None,
    occurred_at: Optional[datetime] = None,
) -> ExpenseReceipt:
    """Validate and persist a new expense for ``account``."""

    amount = parse_amount(amount_text)
    cleaned = clean_description(description)
    expense = Expense(
        account_id=account.id,
        amount=amount,
        description=cleaned,
        category=category or classify(cleaned),
        occurred_at=occurred_at or datetime.now(timezone.utc),
        source=source,
    )
    session.add(expense)
    await session.commit()
    await session.refresh(expense)
    currency = account.currency.value if account.currency else get_settings().default_currency
    return ExpenseReceipt(
        expense_id=expense.id,
        amount=amount,
        currency=currency,
        description=cleaned,
        category=expense.category,
        source=source,
    )


async def add_chat_expense(
    session: AsyncSession,
    chat_id: str,
    amount_text: str | None,
    description: str | None,
) -> ExpenseReceipt:
    """Record an expense sent from a Telegram chat; raises ``NotLinkedError`` first."""
    account = await require_linked_account(session, chat_id)
    return await add_expense(session, account, amount_text, description, ExpenseSource.CHAT)


async def list_expenses(
    session: AsyncSession,
    account_id: UUID,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> Sequence[Expense]:
    stmt = select(Expense).where(Expense.account_id == account_id)
    if start is not None:
        stmt = stmt.where(Expense.occurred_at >= start)
    if end is not None:
        stmt = stmt.where(Expense.occurred_at < end)
    stmt = stmt.order_by(Expense.occurred_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return result.scalars().all()


async def delete_expense(session: AsyncSession, account_id: UUID, expense_id: UUID) -> None:
    expense = await session.get(Expense, expense_id)
    if expense is None or expense.account_id != account_id:
        raise ExpenseNotFoundError(str(expense_id))
    await session.delete(expense)
    await session.commit()
