"""Throwaway SQLite databases for service-level tests."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from budgetly.models import Account, Base, Currency, Expense


async def create_test_database() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_account(
    session: AsyncSession,
    *,
    email: str = "alice@example.com",
    name: str = "Alice",
    monthly_budget: Decimal = Decimal("100"),
    chat_id: str | None = None,
    is_active: bool = True,
) -> Account:
    account = Account(
        email=email,
        name=name,
        monthly_budget=monthly_budget,
        currency=Currency.GBP,
        telegram_chat_id=chat_id,
        is_active=is_active,
    )
    session.add(account)
    await session.commit()
    await session.refresh(account)
    return account


async def count_expenses(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Expense.id)))
    return int(result.scalar_one())
