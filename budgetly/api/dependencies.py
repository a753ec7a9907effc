from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..models.account import Account
from ..services.accounts import get_account
from ..services.auth import AuthenticationError, account_id_from_token


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    description="Bearer token issued by the credential service; `sub` is the account id.",
)

SessionDep = Annotated[AsyncSession, Depends(get_db)]
TokenDep = Annotated[str, Depends(oauth2_scheme)]


def _unauthorised(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_account(session: SessionDep, token: TokenDep) -> Account:
    try:
        account_id = account_id_from_token(token)
    except AuthenticationError as exc:
        raise _unauthorised(str(exc)) from exc

    account = await get_account(session, account_id)
    if not account or not account.is_active:
        raise _unauthorised("Account not found or inactive")
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
