from fastapi import APIRouter

from . import budget, expenses, telegram

api_router = APIRouter()
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(budget.router, prefix="/budget", tags=["budget"])
api_router.include_router(telegram.router, prefix="/telegram", tags=["telegram"])
