"""
Receipt processing: image in, persisted expense out.

The run is an explicit state machine. Every request ends in exactly one
terminal state, and each terminal state has exactly one response shape:

    START -> PROVISIONED -> MODEL_SUCCEEDED | MODELS_EXHAUSTED
          -> PARSED_CANDIDATE | NO_CANDIDATE -> RECONCILED
          -> COMMITTED | COMMIT_ERROR

An unexpected exception at any point diverts to the last-resort write,
ending in COMMITTED_FALLBACK, or REJECTED when even that write fails.
"""

from __future__ import annotations

import datetime as dt
import enum
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import sessionmaker

from snapspend.core.config import settings
from snapspend.core.db import SessionLocal
from snapspend.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    set_user_context,
)
from snapspend.modules.categories.service import canonical_category, ensure_default_categories
from snapspend.modules.expenses.models import MERCHANT_MAX_LENGTH, Expense, ProcessingStatus
from snapspend.modules.expenses.schemas import ExpenseOut
from snapspend.modules.expenses.service import StoreError, insert_expense
from snapspend.modules.extraction.ai import RECEIPT_PROMPT, decode_image_payload, invoke_backend
from snapspend.modules.extraction.fallback import synthesize_emergency_record, synthesize_fallback
from snapspend.modules.extraction.parser import parse_candidate
from snapspend.modules.extraction.reconcile import Reconciliation, reconcile
from snapspend.modules.extraction.schemas import ReceiptCandidate
from snapspend.modules.extraction.waterfall import Invoke, WaterfallResult, run_waterfall
from snapspend.modules.identity.service import ensure_user_exists

logger = get_logger(__name__)

EMERGENCY_DESCRIPTION = "Receipt uploaded - Please edit amount and details"


class PipelineState(str, enum.Enum):
    START = "start"
    PROVISIONED = "provisioned"
    MODEL_SUCCEEDED = "model_succeeded"
    MODELS_EXHAUSTED = "models_exhausted"
    PARSED_CANDIDATE = "parsed_candidate"
    NO_CANDIDATE = "no_candidate"
    RECONCILED = "reconciled"
    COMMITTED = "committed"
    COMMIT_ERROR = "commit_error"
    COMMITTED_FALLBACK = "committed_fallback"
    REJECTED = "rejected"


_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.START: {PipelineState.PROVISIONED},
    PipelineState.PROVISIONED: {PipelineState.MODEL_SUCCEEDED, PipelineState.MODELS_EXHAUSTED},
    PipelineState.MODEL_SUCCEEDED: {PipelineState.PARSED_CANDIDATE, PipelineState.NO_CANDIDATE},
    PipelineState.MODELS_EXHAUSTED: {PipelineState.NO_CANDIDATE},
    PipelineState.PARSED_CANDIDATE: {PipelineState.RECONCILED},
    PipelineState.NO_CANDIDATE: {PipelineState.RECONCILED},
    PipelineState.RECONCILED: {PipelineState.COMMITTED, PipelineState.COMMIT_ERROR},
}

TERMINAL_STATES: frozenset[PipelineState] = frozenset(
    {
        PipelineState.COMMITTED,
        PipelineState.COMMIT_ERROR,
        PipelineState.COMMITTED_FALLBACK,
        PipelineState.REJECTED,
    }
)

# Reachable from any non-terminal state once an unexpected error is caught.
_RESCUE_STATES = frozenset({PipelineState.COMMITTED_FALLBACK, PipelineState.REJECTED})


@dataclass
class PipelineOutcome:
    state: PipelineState
    status_code: int
    body: dict[str, Any]
    history: list[PipelineState] = field(default_factory=list)


@dataclass
class _Run:
    user_id: str
    today: dt.date
    state: PipelineState = PipelineState.START
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.START])
    waterfall: WaterfallResult | None = None
    reconciliation: Reconciliation | None = None
    synthesized: bool = False
    expense: Expense | None = None
    store_error: StoreError | None = None
    failure: str | None = None

    def advance(self, state: PipelineState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if self.state not in TERMINAL_STATES and state in _RESCUE_STATES:
            allowed = allowed | _RESCUE_STATES
        if state not in allowed:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


def provision_prerequisites(session_factory: sessionmaker, *, user_id: str) -> bool:
    """Make sure the user row and default categories exist. Failures are logged, not raised."""
    ok = True
    try:
        with session_factory() as session:
            ensure_user_exists(session, user_id=user_id)
    except Exception:  # noqa: BLE001
        ok = False
        log_exception(logger, "receipt.provision.user_error", user_id=user_id)

    try:
        with session_factory() as session:
            ensure_default_categories(session, user_id=user_id)
    except Exception:  # noqa: BLE001
        ok = False
        log_exception(logger, "receipt.provision.categories_error", user_id=user_id)

    return ok


def process_receipt(
    *,
    image: str | bytes,
    user_id: str,
    session_factory: sessionmaker | None = None,
    backend_ids: Sequence[str] | None = None,
    invoke: Invoke | None = None,
    today: dt.date | None = None,
) -> PipelineOutcome:
    factory = session_factory or SessionLocal
    run = _Run(user_id=user_id, today=today or dt.date.today())
    set_user_context(user_id)
    start = time.monotonic()
    log_event(logger, "receipt.start", user_id=user_id)

    try:
        provision_prerequisites(factory, user_id=user_id)
        run.advance(PipelineState.PROVISIONED)

        payload = decode_image_payload(image)
        run.waterfall = run_waterfall(
            image=payload,
            prompt=RECEIPT_PROMPT,
            backend_ids=list(settings.extraction_models if backend_ids is None else backend_ids),
            invoke=invoke or invoke_backend,
        )
        if run.waterfall.succeeded:
            run.advance(PipelineState.MODEL_SUCCEEDED)
            candidate = parse_candidate(run.waterfall.text)
        else:
            run.advance(PipelineState.MODELS_EXHAUSTED)
            candidate = None

        if candidate is None:
            log_event(
                logger,
                "receipt.parse.miss",
                backend=run.waterfall.backend_id,
                models_exhausted=not run.waterfall.succeeded,
            )
            candidate = synthesize_fallback(today=run.today)
            run.synthesized = True
            run.advance(PipelineState.NO_CANDIDATE)
        else:
            log_event(logger, "receipt.parse.ok", backend=run.waterfall.backend_id)
            run.advance(PipelineState.PARSED_CANDIDATE)

        run.reconciliation = reconcile(candidate)
        run.advance(PipelineState.RECONCILED)
        log_event(
            logger,
            "receipt.reconcile.done",
            total=run.reconciliation.total,
            items_total=run.reconciliation.items_total,
            needs_review=run.reconciliation.needs_review,
        )

        stored = insert_expense(factory, _expense_fields(run))
        if isinstance(stored, StoreError):
            run.store_error = stored
            run.advance(PipelineState.COMMIT_ERROR)
            log_event(
                logger,
                "receipt.commit.error",
                code=stored.code,
                error=stored.message,
                duration_ms=monotonic_ms(start),
            )
        else:
            run.expense = stored
            run.advance(PipelineState.COMMITTED)
            log_event(
                logger,
                "receipt.commit.ok",
                expense_id=str(stored.id),
                amount=str(stored.amount),
                processing_status=stored.processing_status.value,
                duration_ms=monotonic_ms(start),
            )
    except Exception as e:  # noqa: BLE001
        run.failure = str(e) or type(e).__name__
        log_exception(
            logger,
            "receipt.error",
            state=run.state.value,
            duration_ms=monotonic_ms(start),
        )
        return _rescue(run, factory)

    return _respond(run)


def _rescue(run: _Run, factory: sessionmaker) -> PipelineOutcome:
    candidate = reconcile(synthesize_emergency_record(today=run.today)).candidate
    fields = {
        "user_id": run.user_id,
        "amount": _money(candidate.total),
        "description": EMERGENCY_DESCRIPTION,
        "category": None,
        "date": run.today,
        "merchant": None,
        "payment_method": None,
        "receipt_url": None,
        "extracted_data": candidate.model_dump(mode="json"),
        "processing_status": ProcessingStatus.FAILED,
        "ai_confidence": None,
        "needs_review": True,
    }
    run.reconciliation = Reconciliation(candidate=candidate, items_total=0.0, needs_review=True)
    try:
        stored = insert_expense(factory, fields)
    except Exception as e:  # noqa: BLE001
        run.failure = str(e) or type(e).__name__
        run.advance(PipelineState.REJECTED)
        log_exception(logger, "receipt.fallback.error")
        return _respond(run)

    if isinstance(stored, StoreError):
        run.store_error = stored
        run.advance(PipelineState.REJECTED)
        log_event(logger, "receipt.fallback.store_error", code=stored.code, error=stored.message)
        return _respond(run)

    run.expense = stored
    run.advance(PipelineState.COMMITTED_FALLBACK)
    log_event(logger, "receipt.fallback.ok", expense_id=str(stored.id))
    return _respond(run)


def _respond(run: _Run) -> PipelineOutcome:
    state = run.state
    if state == PipelineState.COMMITTED:
        body = _committed_body(run)
        status_code = 200
    elif state == PipelineState.COMMIT_ERROR:
        body = {
            "error": run.store_error.message,
            "debug": {
                **run.store_error.as_debug(),
                "extractedData": _candidate_dump(run),
                "attempts": _attempts(run),
            },
        }
        status_code = 500
    elif state == PipelineState.COMMITTED_FALLBACK:
        body = {
            "success": True,
            "expense": _expense_dump(run.expense),
            "extractedData": _candidate_dump(run),
            "message": (
                "Receipt uploaded! AI extraction failed - please edit the expense manually."
            ),
            "debug": {
                "error": "AI processing failed",
                "reason": run.failure,
                "fallback": True,
                "expenseId": str(run.expense.id) if run.expense else None,
                "userId": run.user_id,
            },
        }
        status_code = 200
    elif state == PipelineState.REJECTED:
        if run.store_error is not None:
            body = {"error": f"Complete failure: {run.store_error.message}"}
        else:
            body = {"error": f"Complete system failure: {run.failure}"}
        status_code = 500
    else:
        raise RuntimeError(f"No response for non-terminal state {state.value}")
    return PipelineOutcome(state=state, status_code=status_code, body=body, history=run.history)


def _committed_body(run: _Run) -> dict[str, Any]:
    waterfall = run.waterfall or WaterfallResult()
    candidate = run.reconciliation.candidate
    if run.synthesized:
        message = "Receipt saved, but AI extraction failed - please edit the amount and details."
    else:
        message = (
            f"Successfully extracted {candidate.total:.2f} from "
            f"{candidate.store_name or 'Receipt'} using {waterfall.backend_id}"
        )
    return {
        "success": True,
        "expense": _expense_dump(run.expense),
        "extractedData": _candidate_dump(run),
        "message": message,
        "debug": {
            "modelsAttempted": len(waterfall.attempts),
            "lastError": waterfall.last_error or "No errors",
            "expenseId": str(run.expense.id),
            "userId": run.user_id,
            "backend": waterfall.backend_id,
            "attempts": _attempts(run),
            "needsReview": run.reconciliation.needs_review,
            "warnings": list(run.reconciliation.warnings),
        },
    }


def _expense_fields(run: _Run) -> dict[str, Any]:
    candidate = run.reconciliation.candidate
    if run.synthesized:
        status = ProcessingStatus.FAILED
        confidence = settings.fallback_confidence
    else:
        status = ProcessingStatus.COMPLETED
        confidence = settings.extraction_confidence
    return {
        "user_id": run.user_id,
        "amount": _money(candidate.total),
        "description": candidate.store_name or "Receipt",
        "category": canonical_category(candidate.category),
        "date": _receipt_date(candidate, run.today),
        "merchant": None if run.synthesized else _clip(candidate.store_name, MERCHANT_MAX_LENGTH),
        "payment_method": None,
        "receipt_url": None,
        "extracted_data": candidate.model_dump(mode="json"),
        "processing_status": status,
        "ai_confidence": confidence,
        "needs_review": run.synthesized or run.reconciliation.needs_review,
    }


def _clip(value: str | None, limit: int) -> str | None:
    return value[:limit] if value else value


def _receipt_date(candidate: ReceiptCandidate, today: dt.date) -> dt.date:
    if not candidate.date:
        return today
    try:
        return dt.date.fromisoformat(candidate.date[:10])
    except ValueError:
        return today


def _money(value: float | None) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _attempts(run: _Run) -> list[dict[str, Any]]:
    if run.waterfall is None:
        return []
    return [a.as_dict() for a in run.waterfall.attempts]


def _candidate_dump(run: _Run) -> dict[str, Any] | None:
    if run.reconciliation is None:
        return None
    return run.reconciliation.candidate.model_dump(mode="json")


def _expense_dump(expense: Expense | None) -> dict[str, Any] | None:
    if expense is None:
        return None
    return ExpenseOut.model_validate(expense, from_attributes=True).model_dump(mode="json")
