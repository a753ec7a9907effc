import hmac
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Request, Response, status

from ..config import get_settings
from ..schemas import LinkingCodeResponse, LinkStatusResponse
from ..services.linking import (
    LinkingCodeUnavailableError,
    disconnect,
    generate_code,
    get_link_status,
)
from ..telegram.bot import BotNotReadyError, handle_update
from .dependencies import CurrentAccount, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_secret(secret: Optional[str]) -> None:
    settings = get_settings()
    expected = settings.telegram_webhook_secret
    if not expected or not secret or not hmac.compare_digest(secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/webhook", status_code=status.HTTP_204_NO_CONTENT)
async def telegram_webhook(
    request: Request,
    secret: Annotated[Optional[str], Header(alias="X-Telegram-Bot-Api-Secret-Token")] = None,
) -> Response:
    try:
        verify_secret(secret)
    except HTTPException:
        logger.warning("Rejected Telegram webhook call with a bad secret token.")
        raise
    payload = await request.json()
    try:
        await handle_update(payload)
    except BotNotReadyError:
        logger.warning("Telegram update received before the bot was started.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Telegram bot is not running",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/link-code", response_model=LinkingCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_link_code_endpoint(
    session: SessionDep, current_account: CurrentAccount
) -> LinkingCodeResponse:
    try:
        issued = await generate_code(session, current_account.id)
    except LinkingCodeUnavailableError:
        logger.exception("Could not issue a linking code for account %s", current_account.id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not issue a linking code, please retry",
        )
    return LinkingCodeResponse.model_validate(issued)


@router.get("/status", response_model=LinkStatusResponse)
async def link_status_endpoint(
    session: SessionDep, current_account: CurrentAccount
) -> LinkStatusResponse:
    link_status = await get_link_status(session, current_account.id)
    return LinkStatusResponse.model_validate(link_status)


@router.delete("/link", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_endpoint(session: SessionDep, current_account: CurrentAccount) -> Response:
    await disconnect(session, current_account.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
