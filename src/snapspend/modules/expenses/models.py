from __future__ import annotations

import datetime as dt
import enum
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Date, Enum, Float, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snapspend.core.models import Base, Timestamped, UUIDPrimaryKey

USER_ID_MAX_LENGTH = 64
MERCHANT_MAX_LENGTH = 200


class ProcessingStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class Expense(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense"

    # No foreign key: provisioning the user row is best-effort and must never
    # block recording spend.
    user_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    date: Mapped[dt.date] = mapped_column(Date, index=True)

    merchant: Mapped[str | None] = mapped_column(String(MERCHANT_MAX_LENGTH), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    extracted_data: Mapped[dict] = mapped_column(JSON, default=dict)
    processing_status: Mapped[ProcessingStatus] = mapped_column(
        Enum(
            ProcessingStatus,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False)
