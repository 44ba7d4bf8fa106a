from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from snapspend.modules.expenses.models import MERCHANT_MAX_LENGTH, ProcessingStatus


class ExpenseUpdateIn(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    description: str | None = None
    category: str | None = Field(default=None, max_length=50)
    date: dt.date | None = None
    merchant: str | None = Field(default=None, max_length=MERCHANT_MAX_LENGTH)
    payment_method: str | None = Field(default=None, max_length=50)


class ExpenseOut(BaseModel):
    id: uuid.UUID
    user_id: str
    amount: Decimal
    description: str | None
    category: str | None
    date: dt.date
    merchant: str | None
    payment_method: str | None
    receipt_url: str | None
    extracted_data: dict
    processing_status: ProcessingStatus
    ai_confidence: float | None
    needs_review: bool
    created_at: dt.datetime
    updated_at: dt.datetime
