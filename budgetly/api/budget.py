from fastapi import APIRouter, HTTPException, Query

from ..schemas import BudgetSettingsRead, BudgetStatusRead, BudgetUpdate, CategoryTotalRead
from ..services.budget import (
    BudgetWindow,
    InvalidBudgetError,
    category_breakdown,
    get_status,
    set_monthly_budget,
)
from .dependencies import CurrentAccount, SessionDep

router = APIRouter()


@router.get("/status", response_model=BudgetStatusRead)
async def budget_status_endpoint(
    session: SessionDep,
    current_account: CurrentAccount,
    window: BudgetWindow = Query(default=BudgetWindow.MONTH),
) -> BudgetStatusRead:
    budget_status = await get_status(session, current_account, window)
    breakdown = await category_breakdown(session, current_account.id, window)
    return BudgetStatusRead.model_validate(budget_status).model_copy(
        update={"categories": [CategoryTotalRead.model_validate(item) for item in breakdown]}
    )


@router.put("", response_model=BudgetSettingsRead)
async def update_budget_endpoint(
    payload: BudgetUpdate,
    session: SessionDep,
    current_account: CurrentAccount,
) -> BudgetSettingsRead:
    try:
        amount = await set_monthly_budget(session, current_account, payload.monthly_budget)
    except InvalidBudgetError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return BudgetSettingsRead(monthly_budget=amount, currency=current_account.currency.value)
