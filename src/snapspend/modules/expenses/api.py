from __future__ import annotations

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from snapspend.core.db import db_session
from snapspend.modules.expenses.schemas import ExpenseOut, ExpenseUpdateIn
from snapspend.modules.expenses.service import (
    delete_expense,
    get_expense,
    list_expenses,
    update_expense,
)

router = APIRouter(tags=["expenses"])


@router.get("/users/{user_id}/expenses", response_model=list[ExpenseOut])
def list_expenses_endpoint(
    user_id: str,
    category: str | None = None,
    search: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    session: Session = Depends(db_session),
) -> list[ExpenseOut]:
    expenses = list_expenses(
        session,
        user_id=user_id,
        category=category,
        search=search,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return [ExpenseOut.model_validate(e, from_attributes=True) for e in expenses]


@router.get("/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense_endpoint(
    expense_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> ExpenseOut:
    expense = get_expense(session, expense_id=expense_id)
    return ExpenseOut.model_validate(expense, from_attributes=True)


@router.patch("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense_endpoint(
    expense_id: uuid.UUID,
    payload: ExpenseUpdateIn,
    session: Session = Depends(db_session),
) -> ExpenseOut:
    expense = update_expense(
        session,
        expense_id=expense_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return ExpenseOut.model_validate(expense, from_attributes=True)


@router.delete("/expenses/{expense_id}")
def delete_expense_endpoint(
    expense_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> Response:
    delete_expense(session, expense_id=expense_id)
    return Response(status_code=204)
