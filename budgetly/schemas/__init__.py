from .budget import BudgetSettingsRead, BudgetStatusRead, BudgetUpdate, CategoryTotalRead
from .expense import ExpenseCreate, ExpenseRead, ExpenseReceiptRead
from .linking import LinkingCodeResponse, LinkStatusResponse

__all__ = [
    "BudgetSettingsRead",
    "BudgetStatusRead",
    "BudgetUpdate",
    "CategoryTotalRead",
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseReceiptRead",
    "LinkingCodeResponse",
    "LinkStatusResponse",
]
