from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import BotCommand, Update
from telegram.constants import ParseMode
from telegram.ext import AIORateLimiter, Application, ContextTypes, MessageHandler, filters

from ..config import get_settings
from ..db import SessionLocal
from ..services.accounts import NotLinkedError, get_account_by_chat_id, require_linked_account
from ..services.budget import (
    MIN_CHAT_BUDGET,
    BudgetWindow,
    InvalidBudgetError,
    app_timezone,
    category_breakdown,
    daily_allowance,
    days_left_in_month,
    get_status,
    parse_budget_amount,
    set_monthly_budget,
    window_start,
)
from ..services.commands import (
    Action,
    Add,
    Budget,
    CommandRouter,
    Help,
    ImplicitAdd,
    Link,
    ListExpenses,
    SetBudget,
    Start,
    Today,
    Total,
    Unrecognized,
    split_add_payload,
)
from ..services.conversation import InMemoryStateStore
from ..services.expenses import (
    DescriptionTooLongError,
    InvalidAmountError,
    InvalidDescriptionError,
    add_chat_expense,
    list_expenses,
)
from ..services.linking import LinkError, consume_code
from . import messages
from .voice import TranscriptionUnavailableError, VoicePipeline, WitTranscriber

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message"]
RECENT_EXPENSES_LIMIT = 10
WEBHOOK_PATH = "/api/telegram/webhook"

BOT_COMMANDS = [
    BotCommand("start", "Start or link your account"),
    BotCommand("add", "Add an expense"),
    BotCommand("budget", "Check this month's budget"),
    BotCommand("today", "View today's expenses"),
    BotCommand("total", "This month's total and average"),
    BotCommand("list", "Show recent expenses"),
    BotCommand("setbudget", "Change your monthly budget"),
    BotCommand("link", "Link with a code from the web app"),
    BotCommand("help", "List bot commands"),
]

class BotNotReadyError(RuntimeError):
    """Raised when an update arrives before the bot has been initialised."""


_application: Application | None = None
_transcriber: WitTranscriber | None = None
_lock = asyncio.Lock()


def _session_factory(context: ContextTypes.DEFAULT_TYPE) -> async_sessionmaker[AsyncSession]:
    return context.application.bot_data["session_factory"]


def _router(context: ContextTypes.DEFAULT_TYPE) -> CommandRouter:
    return context.application.bot_data["router"]


def _display_name(update: Update) -> str | None:
    user = update.effective_user
    if user is None:
        return None
    return user.username or user.full_name


async def _reply(update: Update, text: str) -> None:
    await update.message.reply_text(text, parse_mode=ParseMode.HTML)


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str) -> None:
    router = _router(context)
    async with _session_factory(context)() as session:
        account = await get_account_by_chat_id(session, chat_id)
    if account is not None:
        await router.finish_linking(chat_id)
        await _reply(update, messages.start_linked_text(account.name))
        return
    await router.begin_linking(chat_id)
    await _reply(update, messages.start_unlinked_text())


async def handle_link(
    update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str, code: str | None
) -> None:
    if not code:
        await _reply(update, messages.LINK_USAGE_TEXT)
        return
    router = _router(context)
    async with _session_factory(context)() as session:
        try:
            account = await consume_code(session, code, chat_id, _display_name(update))
        except LinkError as exc:
            logger.info("Linking attempt from chat %s rejected: %s", chat_id, exc.code.value)
            await _reply(update, messages.LINK_ERROR_TEXT[exc.code])
            return
    await router.finish_linking(chat_id)
    logger.info("Chat %s linked to account %s", chat_id, account.id)
    await _reply(update, messages.linked_text(account.name))


async def handle_add(
    update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str, payload: str
) -> None:
    amount_text, description = split_add_payload(payload)
    async with _session_factory(context)() as session:
        try:
            receipt = await add_chat_expense(session, chat_id, amount_text, description)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        except InvalidAmountError:
            await _reply(
                update,
                "⚠️ Invalid amount. Must be greater than 0.\n" + messages.ADD_USAGE_TEXT,
            )
            return
        except InvalidDescriptionError:
            await _reply(update, "⚠️ Description cannot be empty.\n" + messages.ADD_USAGE_TEXT)
            return
        except DescriptionTooLongError:
            await _reply(update, "⚠️ Description too long (max 200 characters).")
            return
    await _reply(update, messages.receipt_text(receipt))


async def handle_budget(update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str) -> None:
    async with _session_factory(context)() as session:
        try:
            account = await require_linked_account(session, chat_id)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        now = datetime.now(app_timezone())
        status = await get_status(session, account, BudgetWindow.MONTH, now=now)
        breakdown = await category_breakdown(session, account.id, BudgetWindow.MONTH, now=now)
    await _reply(
        update,
        messages.budget_text(
            status,
            month_label=messages.month_label(now),
            breakdown=breakdown,
            days_left=days_left_in_month(now),
            daily_allowance=daily_allowance(status, now),
        ),
    )


async def handle_today(update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str) -> None:
    async with _session_factory(context)() as session:
        try:
            account = await require_linked_account(session, chat_id)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        now = datetime.now(app_timezone())
        status = await get_status(session, account, BudgetWindow.DAY, now=now)
        expenses = await list_expenses(
            session,
            account.id,
            start=status.window_start,
            end=now.astimezone(timezone.utc),
        )
    await _reply(update, messages.today_text(status, list(reversed(expenses))))


async def handle_total(update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str) -> None:
    async with _session_factory(context)() as session:
        try:
            account = await require_linked_account(session, chat_id)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        now = datetime.now(app_timezone())
        status = await get_status(session, account, BudgetWindow.MONTH, now=now)
    await _reply(update, messages.total_text(status, month_label=messages.month_label(now)))


async def handle_list(update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str) -> None:
    async with _session_factory(context)() as session:
        try:
            account = await require_linked_account(session, chat_id)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        now = datetime.now(timezone.utc)
        expenses = await list_expenses(
            session,
            account.id,
            start=window_start(BudgetWindow.MONTH, now),
            end=now,
            limit=RECENT_EXPENSES_LIMIT,
        )
        currency = account.currency.value
    await _reply(update, messages.recent_expenses_text(expenses, currency, app_timezone()))


async def handle_set_budget(
    update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str, amount_text: str | None
) -> None:
    if not amount_text:
        await _reply(update, messages.SETBUDGET_USAGE_TEXT)
        return
    async with _session_factory(context)() as session:
        try:
            account = await require_linked_account(session, chat_id)
        except NotLinkedError:
            await _reply(update, messages.NOT_LINKED_TEXT)
            return
        currency = account.currency.value
        try:
            amount = parse_budget_amount(amount_text)
        except InvalidBudgetError:
            amount = None
        if amount is None or amount <= 0:
            await _reply(update, messages.INVALID_BUDGET_TEXT)
            return
        if amount < MIN_CHAT_BUDGET:
            await _reply(update, messages.budget_too_low_text(amount, currency))
            return
        await set_monthly_budget(session, account, amount)
    logger.info("Chat %s set monthly budget of account %s", chat_id, account.id)
    await _reply(update, messages.budget_updated_text(amount, currency))


async def dispatch(
    update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: str, action: Action
) -> None:
    if isinstance(action, Start):
        await handle_start(update, context, chat_id)
    elif isinstance(action, Link):
        await handle_link(update, context, chat_id, action.code)
    elif isinstance(action, Add):
        await handle_add(update, context, chat_id, action.payload)
    elif isinstance(action, ImplicitAdd):
        await handle_add(update, context, chat_id, action.text)
    elif isinstance(action, Budget):
        await handle_budget(update, context, chat_id)
    elif isinstance(action, Today):
        await handle_today(update, context, chat_id)
    elif isinstance(action, Total):
        await handle_total(update, context, chat_id)
    elif isinstance(action, ListExpenses):
        await handle_list(update, context, chat_id)
    elif isinstance(action, SetBudget):
        await handle_set_budget(update, context, chat_id, action.amount)
    elif isinstance(action, Help):
        await _reply(update, messages.HELP_TEXT)
    elif isinstance(action, Unrecognized):
        await _reply(update, messages.UNRECOGNIZED_TEXT)
    else:  # pragma: no cover - every Action variant is handled above
        raise TypeError(f"Unhandled action {action!r}")


async def process_text(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str | None) -> None:
    """Route one piece of chat text, typed or transcribed, and reply to it."""
    chat_id = str(update.effective_chat.id)
    try:
        action = await _router(context).route(chat_id, text)
        await dispatch(update, context, chat_id, action)
    except SQLAlchemyError:
        logger.exception("Store failure while handling message from chat %s", chat_id)
        await update.message.reply_text(messages.GENERIC_ERROR_TEXT)
    except Exception:
        logger.exception("Unexpected error while handling message from chat %s", chat_id)
        await update.message.reply_text(messages.GENERIC_ERROR_TEXT)


async def text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message:
        return
    await process_text(update, context, update.message.text)


async def voice_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.message
    if not message or not message.voice:
        return
    pipeline: VoicePipeline | None = context.application.bot_data.get("voice_pipeline")
    chat_id = update.effective_chat.id
    await message.reply_text(messages.VOICE_PROCESSING_TEXT)
    try:
        if pipeline is None:
            raise TranscriptionUnavailableError("Voice pipeline is not configured")
        transcript = await pipeline.run(context.bot, message.voice.file_id)
    except TranscriptionUnavailableError as exc:
        logger.warning(
            "Voice message from chat %s could not be processed: %s (cause: %r)",
            chat_id,
            exc,
            exc.__cause__,
        )
        await message.reply_text(messages.VOICE_FAILED_TEXT)
        return
    except Exception:
        logger.exception("Unexpected error while processing voice message from chat %s", chat_id)
        await message.reply_text(messages.VOICE_FAILED_TEXT)
        return
    await message.reply_text(f'📝 Heard: "{transcript}"')
    await process_text(update, context, transcript)


def _create_application(
    token: str,
    session_factory: async_sessionmaker[AsyncSession],
    router: CommandRouter,
    voice_pipeline: VoicePipeline,
) -> Application:
    application = (
        Application.builder()
        .token(token)
        .rate_limiter(AIORateLimiter())
        .build()
    )
    application.bot_data["session_factory"] = session_factory
    application.bot_data["router"] = router
    application.bot_data["voice_pipeline"] = voice_pipeline
    application.add_handler(MessageHandler(filters.TEXT, text_message))
    # Transcription is slow; let other chats keep flowing while it runs.
    application.add_handler(MessageHandler(filters.VOICE, voice_message, block=False))
    return application


async def init_bot() -> None:
    """Initialise the Telegram bot in webhook or long-polling mode."""
    settings = get_settings()
    if not settings.telegram_bot_token:
        logger.info("Telegram bot token not configured; skipping bot initialisation.")
        return
    polling = settings.telegram_delivery_mode == "polling"
    if not polling and not settings.telegram_webhook_secret:
        logger.warning("TELEGRAM_WEBHOOK_SECRET is missing; refusing to start in webhook mode.")
        return

    async with _lock:
        global _application, _transcriber
        if _application is not None:
            return

        router = CommandRouter(
            InMemoryStateStore(),
            state_ttl_seconds=settings.conversation_state_ttl_seconds,
        )
        transcriber = WitTranscriber(settings.wit_ai_token, api_version=settings.wit_ai_api_version)
        voice_pipeline = VoicePipeline(
            transcriber,
            ffmpeg_binary=settings.ffmpeg_binary,
            timeout_seconds=settings.voice_timeout_seconds,
        )
        application = _create_application(
            settings.telegram_bot_token, SessionLocal, router, voice_pipeline
        )

        try:
            await application.initialize()
            await application.start()
            try:
                await application.bot.set_my_commands(BOT_COMMANDS)
            except Exception:
                logger.exception("Failed to set Telegram command list.")
            if polling:
                await application.bot.delete_webhook(drop_pending_updates=False)
                await application.updater.start_polling(allowed_updates=ALLOWED_UPDATES)
                logger.info("Telegram bot started in long-polling mode.")
            elif settings.telegram_register_webhook_on_start:
                if not settings.backend_base_url:
                    logger.warning("BACKEND_BASE_URL is missing; not registering the webhook.")
                else:
                    webhook_url = str(settings.backend_base_url).rstrip("/") + WEBHOOK_PATH
                    await application.bot.set_webhook(
                        url=webhook_url,
                        secret_token=settings.telegram_webhook_secret,
                        allowed_updates=ALLOWED_UPDATES,
                    )
                    logger.info("Telegram webhook registered at %s", webhook_url)
        except Exception:
            logger.exception("Failed to initialise Telegram bot; bot disabled for this run.")
            with contextlib.suppress(Exception):
                await application.stop()
            with contextlib.suppress(Exception):
                await application.shutdown()
            await transcriber.aclose()
            return

        _application = application
        _transcriber = transcriber


async def handle_update(payload: dict[str, Any]) -> None:
    """Process a Telegram update pushed to the webhook endpoint."""
    async with _lock:
        if _application is None:
            raise BotNotReadyError("Telegram bot is not initialised.")
        application = _application
    update = Update.de_json(payload, application.bot)
    await application.process_update(update)


async def shutdown_bot() -> None:
    """Stop polling (if active) and tear down the Telegram bot."""
    async with _lock:
        global _application, _transcriber
        if _application is None:
            return
        if _application.updater and _application.updater.running:
            await _application.updater.stop()
        await _application.stop()
        await _application.shutdown()
        if _transcriber:
            await _transcriber.aclose()
        _application = None
        _transcriber = None
