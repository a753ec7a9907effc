from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.account import Account


class NotLinkedError(Exception):
    """Raised when a chat is not bound to any account."""


async def get_account(session: AsyncSession, account_id: UUID) -> Optional[Account]:
    return await session.get(Account, account_id)


async def get_account_by_chat_id(session: AsyncSession, chat_id: str) -> Optional[Account]:
    result = await session.execute(select(Account).where(Account.telegram_chat_id == chat_id))
    return result.scalars().first()


async def require_linked_account(session: AsyncSession, chat_id: str) -> Account:
    account = await get_account_by_chat_id(session, chat_id)
    if account is None or not account.is_active:
        raise NotLinkedError(chat_id)
    return account
