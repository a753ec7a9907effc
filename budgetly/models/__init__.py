from .account import Account, Currency
from .base import Base
from .expense import Expense, ExpenseCategory, ExpenseSource

__all__ = [
    "Base",
    "Account",
    "Currency",
    "Expense",
    "ExpenseCategory",
    "ExpenseSource",
]
