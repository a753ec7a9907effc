from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.account import Account
from ..models.expense import Expense, ExpenseCategory

CRITICAL_PERCENT = Decimal("90")
WARNING_PERCENT = Decimal("70")
MIDWAY_PERCENT = Decimal("50")
# Chat refuses budgets below this; the web API accepts any non-negative amount.
MIN_CHAT_BUDGET = Decimal("10")

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_BUDGET_SYMBOLS = "£$€"


class InvalidBudgetError(ValueError):
    """Raised when a monthly budget is not a non-negative amount within the ceiling."""


class BudgetWindow(str, Enum):
    MONTH = "month"
    DAY = "day"


class BudgetTier(str, Enum):
    ON_TRACK = "on-track"
    MIDWAY = "midway"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BudgetStatus:
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


@dataclass(frozen=True)
class CategoryTotal:
    category: ExpenseCategory
    total: Decimal
    count: int


def app_timezone() -> tzinfo:
    try:
        return ZoneInfo(get_settings().app_timezone)
    except ZoneInfoNotFoundError:
        return timezone.utc


def _local_now(now: datetime | None) -> datetime:
    tz = app_timezone()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def window_start(window: BudgetWindow, now: datetime | None = None) -> datetime:
    """First moment of the current day or month, returned in UTC."""
    local = _local_now(now)
    day = 1 if window is BudgetWindow.MONTH else local.day
    start = datetime(local.year, local.month, day, tzinfo=local.tzinfo)
    return start.astimezone(timezone.utc)


def days_left_in_month(now: datetime | None = None) -> int:
    """Days remaining in the month, counting today."""
    local = _local_now(now)
    last_day = calendar.monthrange(local.year, local.month)[1]
    return last_day - local.day + 1


def budget_percentage(spent: Decimal, budget: Decimal) -> Decimal:
    # A zero budget reports 0% rather than dividing by zero.
    if budget <= _ZERO:
        return _ZERO
    return (spent / budget * 100).quantize(_CENT)


def budget_tier(percentage: Decimal) -> BudgetTier:
    if percentage >= CRITICAL_PERCENT:
        return BudgetTier.CRITICAL
    if percentage >= WARNING_PERCENT:
        return BudgetTier.WARNING
    if percentage >= MIDWAY_PERCENT:
        return BudgetTier.MIDWAY
    return BudgetTier.ON_TRACK


def _as_decimal(value) -> Decimal:
    if value is None:
        return _ZERO
    return Decimal(str(value)).quantize(_CENT)


async def get_status(
    session: AsyncSession,
    account: Account,
    window: BudgetWindow = BudgetWindow.MONTH,
    *,
    now: datetime | None = None,
) -> BudgetStatus:
    """Aggregate spending for ``account`` over the current day or month."""

    now_utc = _local_now(now).astimezone(timezone.utc)
    start = window_start(window, now_utc)
    result = await session.execute(
        select(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)).where(
            Expense.account_id == account.id,
            Expense.occurred_at >= start,
            Expense.occurred_at < now_utc,
        )
    )
    total, count = result.one()
    spent = _as_decimal(total)
    count = int(count or 0)
    budget = _as_decimal(account.monthly_budget)
    percentage = budget_percentage(spent, budget)
    average = (spent / count).quantize(_CENT) if count else _ZERO
    currency = account.currency.value if account.currency else get_settings().default_currency
    return BudgetStatus(
        window=window,
        window_start=start,
        spent=spent,
        budget=budget,
        remaining=budget - spent,
        count=count,
        average=average,
        percentage=percentage,
        tier=budget_tier(percentage),
        currency=currency,
    )


async def category_breakdown(
    session: AsyncSession,
    account_id: UUID,
    window: BudgetWindow = BudgetWindow.MONTH,
    *,
    now: datetime | None = None,
) -> list[CategoryTotal]:
    now_utc = _local_now(now).astimezone(timezone.utc)
    start = window_start(window, now_utc)
    total = func.sum(Expense.amount)
    result = await session.execute(
        select(Expense.category, total, func.count(Expense.id))
        .where(
            Expense.account_id == account_id,
            Expense.occurred_at >= start,
            Expense.occurred_at < now_utc,
        )
        .group_by(Expense.category)
        .order_by(total.desc())
    )
    return [
        CategoryTotal(category=category, total=_as_decimal(amount), count=int(count))
        for category, amount, count in result.all()
    ]


def daily_allowance(status: BudgetStatus, now: datetime | None = None) -> Decimal:
    """Remaining monthly budget spread over the days left, never negative."""
    if status.remaining <= _ZERO:
        return _ZERO
    return (status.remaining / days_left_in_month(now)).quantize(_CENT)



def parse_budget_amount(raw: str | Decimal | None) -> Decimal:
    """Parse a monthly budget such as ``"£150"`` or ``"1,200.50"``."""
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = (raw or "").strip().strip(_BUDGET_SYMBOLS).replace(",", "").strip()
        try:
            value = Decimal(text)
        except (InvalidOperation, ValueError) as exc:
            raise InvalidBudgetError(f"Invalid budget '{raw}'.") from exc
    if not value.is_finite() or value < _ZERO:
        raise InvalidBudgetError("Budget must be a non-negative amount.")
    if value > get_settings().max_expense_amount:
        raise InvalidBudgetError("Budget is above the allowed maximum.")
    return value.quantize(_CENT)


async def set_monthly_budget(
    session: AsyncSession, account: Account, amount: str | Decimal | None
) -> Decimal:
    """Validate and store ``account``'s monthly budget, returning the stored value."""
    value = parse_budget_amount(amount)
    account.monthly_budget = value
    await session.commit()
    await session.refresh(account)
    return value
