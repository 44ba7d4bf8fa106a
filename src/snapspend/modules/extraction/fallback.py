from __future__ import annotations

import datetime as dt

from snapspend.modules.categories.service import FALLBACK_CATEGORY
from snapspend.modules.extraction.reconcile import NOMINAL_TOTAL
from snapspend.modules.extraction.schemas import LineItem, ReceiptCandidate

# Used by the last-resort write after an unexpected failure.
EMERGENCY_TOTAL = 5.00


def synthesize_fallback(*, today: dt.date | None = None) -> ReceiptCandidate:
    """Stand-in candidate for when no backend answered or nothing parsed."""
    day = today or dt.date.today()
    return ReceiptCandidate(
        store_name="Receipt Upload",
        date=day.isoformat(),
        items=[LineItem(description="Receipt item", quantity=1, price=NOMINAL_TOTAL)],
        subtotal=NOMINAL_TOTAL,
        tax=0.0,
        total=NOMINAL_TOTAL,
        category=FALLBACK_CATEGORY,
    )


def synthesize_emergency_record(*, today: dt.date | None = None) -> ReceiptCandidate:
    day = today or dt.date.today()
    return ReceiptCandidate(
        store_name="Manual Entry",
        date=day.isoformat(),
        items=[
            LineItem(
                description="Receipt uploaded - please edit details",
                quantity=1,
                price=EMERGENCY_TOTAL,
            )
        ],
        total=EMERGENCY_TOTAL,
        category=FALLBACK_CATEGORY,
    )
