from __future__ import annotations

import math
from dataclasses import dataclass, field

from snapspend.core.config import settings
from snapspend.core.logging import get_logger, log_event
from snapspend.modules.extraction.schemas import LineItem, ReceiptCandidate

logger = get_logger(__name__)

# Placeholder amount for "could not determine, needs manual correction".
NOMINAL_TOTAL = 10.00


@dataclass(frozen=True)
class Reconciliation:
    candidate: ReceiptCandidate
    items_total: float
    needs_review: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def total(self) -> float:
        return float(self.candidate.total)


def items_total(items: list[LineItem]) -> float:
    total = 0.0
    for item in items:
        price = _finite(getattr(item, "price", None))
        quantity = _finite(getattr(item, "quantity", None))
        price = 0.0 if price is None else price
        quantity = 1.0 if quantity is None else quantity
        total += price * max(quantity, 1.0)
    return total


def reconcile(candidate: ReceiptCandidate) -> Reconciliation:
    """
    Settle the candidate's total using printed-total-first rules.

    1. An extracted total > 0 is the receipt's printed ground truth and is kept,
       even when the item lines add up to something else (reported as a warning).
    2. Otherwise the total is rebuilt from items plus tax, then from the subtotal,
       then falls back to NOMINAL_TOTAL.
    3. Rebuilt amounts are rounded to cents. The result is always finite and > 0.

    Never raises, including for candidates built without validation.
    """
    items = candidate.items if isinstance(candidate.items, list) else []
    sum_items = items_total(items)
    total = _finite(candidate.total)
    subtotal = _finite(candidate.subtotal)
    tax = _finite(candidate.tax)

    updates: dict = {}
    warnings: list[str] = []
    needs_review = False

    if total is not None and total > 0:
        working = total
        if items and _diverges(sum_items, total):
            warnings.append(
                f"Item lines sum to {sum_items:.2f} but the printed total is {total:.2f}"
            )
            log_event(
                logger,
                "receipt.reconcile.divergence",
                total=total,
                items_total=_cents(sum_items),
            )
        if subtotal is not None and subtotal > total:
            warnings.append(f"Subtotal {subtotal:.2f} exceeds total {total:.2f}")
    elif items:
        working = _cents(sum_items + (tax or 0.0))
        updates["subtotal"] = _cents(sum_items)
        log_event(
            logger,
            "receipt.reconcile.from_items",
            items_total=_cents(sum_items),
            tax=tax,
        )
    elif subtotal is not None and subtotal > 0:
        working = subtotal
        log_event(logger, "receipt.reconcile.from_subtotal", subtotal=subtotal)
    else:
        working = NOMINAL_TOTAL
        needs_review = True
        warnings.append("Amount could not be determined; edit the expense to correct it")

    # Printed totals are kept as-is; only a sub-cent or non-finite amount is replaced.
    if working is None or round(working, 2) <= 0:
        log_event(logger, "receipt.reconcile.guard", working_total=str(working))
        working = NOMINAL_TOTAL
        needs_review = True
        warnings.append("Computed amount was not a positive number; edit the expense")

    updates["total"] = working
    finalized = candidate.model_copy(update=updates)
    return Reconciliation(
        candidate=finalized,
        items_total=_cents(sum_items) or 0.0,
        needs_review=needs_review,
        warnings=warnings,
    )


def _diverges(items_sum: float, total: float) -> bool:
    if not math.isfinite(items_sum):
        return True
    tolerance = max(0.01, abs(total) * settings.reconcile_divergence_tolerance)
    return abs(items_sum - total) > tolerance


def _cents(value: float) -> float | None:
    return round(value, 2) if math.isfinite(value) else None


def _finite(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
