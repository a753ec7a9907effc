from .accounts import NotLinkedError, get_account, get_account_by_chat_id, require_linked_account
from .budget import (
    BudgetStatus,
    BudgetTier,
    BudgetWindow,
    category_breakdown,
    get_status,
    set_monthly_budget,
)
from .categories import classify
from .commands import CommandRouter, parse_command
from .expenses import add_chat_expense, add_expense, delete_expense, list_expenses
from .linking import (
    LinkError,
    LinkErrorCode,
    consume_code,
    disconnect,
    generate_code,
    get_link_status,
)
from .normalizer import normalize

__all__ = [
    "NotLinkedError",
    "get_account",
    "get_account_by_chat_id",
    "require_linked_account",
    "BudgetStatus",
    "BudgetTier",
    "BudgetWindow",
    "category_breakdown",
    "get_status",
    "set_monthly_budget",
    "classify",
    "CommandRouter",
    "parse_command",
    "add_chat_expense",
    "add_expense",
    "delete_expense",
    "list_expenses",
    "LinkError",
    "LinkErrorCode",
    "consume_code",
    "disconnect",
    "generate_code",
    "get_link_status",
    "normalize",
]
