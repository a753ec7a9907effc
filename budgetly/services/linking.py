"""Binding Telegram chats to web accounts through short-lived codes."""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.account import Account
from .accounts import get_account, get_account_by_chat_id

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 10
CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_RE = re.compile(rf"^[A-Z0-9]{{{CODE_LENGTH}}}$")


class LinkErrorCode(str, Enum):
    INVALID_FORMAT = "invalid_format"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    ALREADY_LINKED = "already_linked"


class LinkError(Exception):
    """Raised when a linking code cannot be consumed."""

    def __init__(self, code: LinkErrorCode) -> None:
        super().__init__(code.value)
        self.code = code


class AccountNotFoundError(Exception):
    """Raised when the account a code is requested for does not exist."""


class LinkingCodeUnavailableError(RuntimeError):
    """Raised when no unused linking code could be drawn."""


@dataclass(frozen=True)
class LinkingCodeIssued:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class LinkStatus:
    connected: bool
    telegram_username: Optional[str]
    code_pending: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def clean_code(raw: str | None) -> str:
    """Upper-case and validate a user supplied code, raising ``INVALID_FORMAT``."""
    code = (raw or "").strip().upper()
    if not _CODE_RE.match(code):
        raise LinkError(LinkErrorCode.INVALID_FORMAT)
    return code


async def _code_in_use(session: AsyncSession, code: str, account_id: UUID) -> bool:
    # Any other row holding the code blocks it, expired or not; the column is unique.
    result = await session.execute(
        select(Account.id).where(Account.linking_code == code, Account.id != account_id).limit(1)
    )
    return result.first() is not None


async def generate_code(
    session: AsyncSession,
    account_id: UUID,
    *,
    now: datetime | None = None,
) -> LinkingCodeIssued:
    """Issue a fresh code for ``account_id``, replacing any previous one.

    Codes held by other accounts are never reissued; a concurrent issuer that
    wins the unique index forces another draw.
    """

    settings = get_settings()
    now = now or _utcnow()
    expires_at = now + timedelta(seconds=settings.linking_code_ttl_seconds)
    for _ in range(MAX_CODE_ATTEMPTS):
        code = new_code()
        if await _code_in_use(session, code, account_id):
            logger.debug("Linking code collision for account %s; drawing again", account_id)
            continue
        try:
            result = await session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(linking_code=code, linking_code_expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise AccountNotFoundError(str(account_id))
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.info("Linking code taken concurrently for account %s; drawing again", account_id)
            continue
        return LinkingCodeIssued(code=code, expires_at=expires_at)
    raise LinkingCodeUnavailableError(
        f"Could not draw a free linking code after {MAX_CODE_ATTEMPTS} attempts"
    )


async def _find_account_for_code(
    session: AsyncSession, code: str, now: datetime
) -> Optional[Account]:
    result = await session.execute(
        select(Account).where(
            Account.linking_code == code,
            Account.linking_code_expires_at > now,
        )
    )
    return result.scalars().first()


async def _claim_code(
    session: AsyncSession,
    account_id: UUID,
    code: str,
    chat_id: str,
    display_name: Optional[str],
    now: datetime,
) -> bool:
    """Bind the chat only if the code is still held and unexpired.

    Returns ``False`` when another request consumed the code first.
    """
    try:
        result = await session.execute(
            update(Account)
            .where(
                Account.id == account_id,
                Account.linking_code == code,
                Account.linking_code_expires_at > now,
            )
            .values(
                telegram_chat_id=chat_id,
                telegram_username=display_name,
                linking_code=None,
                linking_code_expires_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise LinkError(LinkErrorCode.ALREADY_LINKED) from exc
    return result.rowcount == 1


async def consume_code(
    session: AsyncSession,
    code: str | None,
    chat_id: str,
    display_name: Optional[str] = None,
    *,
    now: datetime | None = None,
) -> Account:
    """Bind ``chat_id`` to the account holding ``code``.

    Linking a chat again to the account it already belongs to is accepted and
    still consumes the code.
    """

    cleaned = clean_code(code)
    now = now or _utcnow()

    account = await _find_account_for_code(session, cleaned, now)
    if account is None:
        raise LinkError(LinkErrorCode.INVALID_OR_EXPIRED)

    existing = await get_account_by_chat_id(session, chat_id)
    if existing is not None and existing.id != account.id:
        raise LinkError(LinkErrorCode.ALREADY_LINKED)

    if not await _claim_code(session, account.id, cleaned, chat_id, display_name, now):
        raise LinkError(LinkErrorCode.INVALID_OR_EXPIRED)

    await session.refresh(account)
    return account


async def disconnect(session: AsyncSession, account_id: UUID) -> None:
    """Remove the chat binding; disconnecting an unlinked account is a no-op."""
    await session.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(telegram_chat_id=None, telegram_username=None)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def get_link_status(
    session: AsyncSession,
    account_id: UUID,
    *,
    now: datetime | None = None,
) -> LinkStatus:
    account = await get_account(session, account_id)
    if account is None:
        raise AccountNotFoundError(str(account_id))
    await session.refresh(account)
    now = now or _utcnow()
    expires_at = account.linking_code_expires_at
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return LinkStatus(
        connected=account.is_linked,
        telegram_username=account.telegram_username,
        code_pending=bool(account.linking_code and expires_at and expires_at > now),
    )
