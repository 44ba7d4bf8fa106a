from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from snapspend.core.logging import get_logger, log_event
from snapspend.modules.expenses.models import Expense, ProcessingStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoreError:
    """A write the database refused (constraint violation, connectivity)."""

    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def as_debug(self) -> dict[str, Any]:
        return {"code": self.code, "details": self.details, "hint": self.hint}


def store_error_from_exception(exc: SQLAlchemyError) -> StoreError:
    orig = getattr(exc, "orig", None) if isinstance(exc, DBAPIError) else None
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None) or exc.code
    diag = getattr(orig, "diag", None)
    hint = getattr(diag, "message_hint", None) if diag is not None else None
    details = getattr(diag, "message_detail", None) if diag is not None else None
    if details is None and isinstance(exc, DBAPIError):
        details = exc.statement
    message = str(orig) if orig is not None else str(exc)
    return StoreError(
        message=message.strip() or type(exc).__name__,
        code=code,
        details=details,
        hint=hint,
    )


def insert_expense(session_factory: sessionmaker, fields: dict[str, Any]) -> Expense | StoreError:
    """
    Insert one expense row in its own session.

    Database-reported failures come back as a `StoreError`; anything else
    (programming errors, bad field names) propagates to the caller.
    """
    with session_factory() as session:
        expense = Expense(**fields)
        session.add(expense)
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            return store_error_from_exception(e)
        session.refresh(expense)
        session.expunge(expense)
    return expense


def get_expense(session: Session, *, expense_id: uuid.UUID) -> Expense:
    expense = session.scalar(select(Expense).where(Expense.id == expense_id))
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


def list_expenses(
    session: Session,
    *,
    user_id: str,
    category: str | None = None,
    search: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    limit: int = 200,
) -> list[Expense]:
    stmt = select(Expense).where(Expense.user_id == user_id)
    if category and category != "All":
        stmt = stmt.where(Expense.category == category)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Expense.description.ilike(pattern),
                Expense.merchant.ilike(pattern),
                Expense.category.ilike(pattern),
            )
        )
    if date_from:
        stmt = stmt.where(Expense.date >= date_from)
    if date_to:
        stmt = stmt.where(Expense.date <= date_to)
    stmt = stmt.order_by(Expense.date.desc(), Expense.created_at.desc()).limit(limit)
    return list(session.scalars(stmt))


def update_expense(session: Session, *, expense_id: uuid.UUID, changes: dict) -> Expense:
    expense = get_expense(session, expense_id=expense_id)

    if "amount" in changes:
        amount = changes["amount"]
        if amount is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Amount is required"
            )
        expense.amount = amount
        # A user-entered amount supersedes whatever extraction produced.
        expense.needs_review = False
        expense.processing_status = ProcessingStatus.COMPLETED
    if "date" in changes:
        if changes["date"] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date is required")
        expense.date = changes["date"]
    for key in ("description", "category", "merchant", "payment_method"):
        if key not in changes:
            continue
        value = changes[key]
        if value is None or not str(value).strip():
            setattr(expense, key, None)
        else:
            setattr(expense, key, str(value).strip())

    session.add(expense)
    session.commit()
    session.refresh(expense)
    log_event(
        logger,
        "expense.updated",
        expense_id=str(expense.id),
        changed=sorted(changes),
    )
    return expense


def delete_expense(session: Session, *, expense_id: uuid.UUID) -> None:
    expense = session.scalar(select(Expense).where(Expense.id == expense_id))
    if not expense:
        return
    session.delete(expense)
    session.commit()
    log_event(logger, "expense.deleted", expense_id=str(expense_id))
