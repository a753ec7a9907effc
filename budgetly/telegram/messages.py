"""Reply texts sent back to Telegram chats (HTML parse mode)."""

from __future__ import annotations

import textwrap
from collections.abc import Sequence
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from html import escape

from ..models.expense import Expense
from ..services.budget import MIN_CHAT_BUDGET, BudgetStatus, BudgetTier, CategoryTotal
from ..services.expenses import ExpenseReceipt
from ..services.linking import LinkErrorCode

CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}

HELP_TEXT = textwrap.dedent(
    """
    🤖 <b>Budgetly Bot Commands</b>

    /add &lt;amount&gt; &lt;desc&gt; - Add expense
    /budget - Check this month's status
    /today - View today's expenses
    /total - This month's total and average
    /list - Last 10 expenses this month
    /setbudget &lt;amount&gt; - Change your monthly budget
    /link &lt;code&gt; - Link your account
    /start - Start or restart linking

    Shortcuts: send "50 coffee", "add five pounds for lunch", "how much left" or "spent today". Voice messages work too.
    """
).strip()

UNRECOGNIZED_TEXT = "Type /help for available commands."
GENERIC_ERROR_TEXT = "❌ Something went wrong. Please try again."
NOT_LINKED_TEXT = "⚠️ Account not linked. Send /start to link your account first."
LINK_USAGE_TEXT = "Please provide the code. Example: /link ABC123"
ADD_USAGE_TEXT = "Format: /add &lt;amount&gt; &lt;description&gt;\nExample: /add 5 coffee"
VOICE_PROCESSING_TEXT = "🎤 Processing voice message..."
VOICE_FAILED_TEXT = "❌ Sorry, I couldn't process your voice message. Please try again or type it."
NO_EXPENSES_TODAY_TEXT = "No expenses tracked today."
NO_EXPENSES_MONTH_TEXT = (
    "📝 No expenses yet this month.\n\nAdd your first expense with:\n/add &lt;amount&gt; &lt;description&gt;"
)
SETBUDGET_USAGE_TEXT = (
    "💰 How to set your budget:\n\n/setbudget &lt;amount&gt;\n\n"
    "Examples:\n• /setbudget 150\n• /setbudget 200\n• /setbudget 300"
)
INVALID_BUDGET_TEXT = "❌ Invalid amount. Use: /setbudget &lt;amount&gt;\n\nExample: /setbudget 150"

LINK_ERROR_TEXT: dict[LinkErrorCode, str] = {
    LinkErrorCode.INVALID_FORMAT: (
        "❌ That doesn't look like a linking code. Codes are 6 letters or digits, e.g. ABC123."
    ),
    LinkErrorCode.INVALID_OR_EXPIRED: (
        "❌ Invalid or expired code.\n\n"
        "Please get a new code from the web app and try again, or use /start to restart."
    ),
    LinkErrorCode.ALREADY_LINKED: "⚠️ This Telegram account is already linked to another user.",
}

TIER_TEXT: dict[BudgetTier, str] = {
    BudgetTier.CRITICAL: "🚨 Over 90% used!",
    BudgetTier.WARNING: "⚠️ Getting close!",
    BudgetTier.MIDWAY: "📊 Halfway there",
    BudgetTier.ON_TRACK: "✨ On track!",
}


def format_amount(amount: str | Decimal, currency: str) -> str:
    try:
        value = Decimal(str(amount)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return f"{amount} {currency}"
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    sign = "-" if value < 0 else ""
    if symbol:
        return f"{sign}{symbol}{abs(value):,}"
    return f"{sign}{abs(value):,} {currency.upper()}"


def progress_bar(percentage: Decimal, width: int = 10) -> str:
    filled = int(round(min(max(percentage, Decimal("0")), Decimal("100")) / 100 * width))
    return "█" * filled + "░" * (width - filled)


def start_linked_text(name: str) -> str:
    return (
        f"Welcome back, {escape(name)}! 🚀\n\n"
        "Type /add &lt;amount&gt; &lt;desc&gt; to track an expense.\n"
        "Type /budget to see your status."
    )


def start_unlinked_text() -> str:
    return (
        "Welcome to Budgetly! 👋\n\n"
        "To start tracking expenses, please link your account:\n"
        "1. Log in to the web app\n"
        "2. Go to Settings → Link Telegram\n"
        "3. Get your 6-character code\n"
        "4. Send the code here (or type /link &lt;code&gt;)\n\n"
        "Waiting for your linking code..."
    )


def linked_text(name: str) -> str:
    return (
        f"✅ Successfully linked to {escape(name)}!\n\n"
        "You can now add expenses with /add &lt;amount&gt; &lt;description&gt;\n"
        "Example: /add 15.50 lunch at cafe"
    )


def receipt_text(receipt: ExpenseReceipt) -> str:
    return (
        f"✅ Added: {format_amount(receipt.amount, receipt.currency)} "
        f"for \"{escape(receipt.description)}\"\n"
        f"📂 Category: {receipt.category.value}"
    )


def budget_text(
    status: BudgetStatus,
    *,
    month_label: str,
    breakdown: Sequence[CategoryTotal] = (),
    days_left: int | None = None,
    daily_allowance: Decimal | None = None,
) -> str:
    currency = status.currency
    lines = [
        f"📊 <b>Monthly Budget</b> ({escape(month_label)})",
        "",
        f"Limit: {format_amount(status.budget, currency)}",
        f"Spent: {format_amount(status.spent, currency)}",
        f"Remaining: {format_amount(status.remaining, currency)}",
        "",
        f"{progress_bar(status.percentage)} {status.percentage:.0f}%",
        TIER_TEXT[status.tier],
    ]
    if status.remaining < 0:
        lines.append(f"You are over budget by {format_amount(-status.remaining, currency)}.")
    elif days_left and daily_allowance is not None:
        plural = "s" if days_left != 1 else ""
        lines.append(
            f"📅 {days_left} day{plural} left · {format_amount(daily_allowance, currency)}/day"
        )
    if breakdown:
        lines.append("")
        lines.append("<b>By category</b>")
        lines.extend(
            f"• {item.category.value}: {format_amount(item.total, currency)}" for item in breakdown
        )
    return "\n".join(lines)


def today_text(status: BudgetStatus, expenses: Sequence[Expense]) -> str:
    if not expenses:
        return NO_EXPENSES_TODAY_TEXT
    lines = ["📅 <b>Today's Expenses</b>", ""]
    for expense in expenses:
        lines.append(
            f"• {format_amount(expense.amount, status.currency)} - {escape(expense.description)}"
        )
    lines.append("")
    lines.append(f"Total: {format_amount(status.spent, status.currency)}")
    return "\n".join(lines)


def month_label(moment: datetime) -> str:
    return moment.strftime("%B %Y")


def total_text(status: BudgetStatus, *, month_label: str) -> str:
    lines = [
        f"📊 <b>{escape(month_label)} Expenses</b>",
        "",
        f"Total spent: {format_amount(status.spent, status.currency)}",
        f"Number of expenses: {status.count}",
        f"Average expense: {format_amount(status.average, status.currency)}",
        "",
        "💡 No expenses yet this month!" if status.count == 0 else "✅ Keep tracking!",
    ]
    return "\n".join(lines)


def recent_expenses_text(expenses: Sequence[Expense], currency: str, tz: tzinfo) -> str:
    if not expenses:
        return NO_EXPENSES_MONTH_TEXT
    lines = [f"📝 <b>Recent Expenses</b> (Last {len(expenses)})", ""]
    total = Decimal("0")
    for index, expense in enumerate(expenses, start=1):
        occurred_at = expense.occurred_at
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)
        lines.append(
            f"{index}. {format_amount(expense.amount, currency)} - {escape(expense.description)}"
        )
        lines.append(f"   📅 {occurred_at.astimezone(tz):%d %b %Y}")
        total += Decimal(str(expense.amount))
    lines.append("")
    lines.append(f"Total: {format_amount(total, currency)}")
    return "\n".join(lines)


def budget_updated_text(amount: Decimal, currency: str) -> str:
    return (
        f"✅ Monthly budget updated to {format_amount(amount, currency)}\n\n"
        "Use /budget to see your current status."
    )


def budget_too_low_text(amount: Decimal, currency: str) -> str:
    return (
        f"⚠️ Budget seems too low ({format_amount(amount, currency)}).\n\n"
        f"Minimum is {format_amount(MIN_CHAT_BUDGET, currency)}/month. Nothing was changed."
    )
