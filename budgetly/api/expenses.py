from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from ..models.expense import ExpenseSource
from ..schemas import ExpenseCreate, ExpenseRead, ExpenseReceiptRead
from ..services.expenses import (
    ExpenseNotFoundError,
    ExpenseValidationError,
    add_expense,
    delete_expense,
    list_expenses,
)
from .dependencies import CurrentAccount, SessionDep

router = APIRouter()


@router.post("", response_model=ExpenseReceiptRead, status_code=status.HTTP_201_CREATED)
async def create_expense_endpoint(
    payload: ExpenseCreate,
    session: SessionDep,
    current_account: CurrentAccount,
) -> ExpenseReceiptRead:
    try:
        receipt = await add_expense(
            session,
            current_account,
            payload.amount,
            payload.description,
            ExpenseSource.WEB,
            category=payload.category,
            occurred_at=payload.occurred_at,
        )
    except ExpenseValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ExpenseReceiptRead.model_validate(receipt)


@router.get("", response_model=list[ExpenseRead])
async def list_expenses_endpoint(
    session: SessionDep,
    current_account: CurrentAccount,
    occurred_after: Optional[datetime] = Query(default=None),
    occurred_before: Optional[datetime] = Query(default=None),
) -> list[ExpenseRead]:
    expenses = await list_expenses(
        session, current_account.id, start=occurred_after, end=occurred_before
    )
    return [ExpenseRead.model_validate(expense) for expense in expenses]


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense_endpoint(
    expense_id: UUID,
    session: SessionDep,
    current_account: CurrentAccount,
) -> Response:
    try:
        await delete_expense(session, current_account.id, expense_id)
    except ExpenseNotFoundError:
        raise HTTPException(status_code=404, detail="Expense not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
