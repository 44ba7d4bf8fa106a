from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from fastapi.testclient import TestClient

from snapspend.core.db import SessionLocal
from snapspend.main import create_app
from snapspend.modules.categories.service import DEFAULT_CATEGORY_NAMES
from snapspend.modules.expenses.models import Expense, ProcessingStatus
from snapspend.modules.expenses.service import insert_expense


def _expense(user_id: str, **overrides) -> Expense:
    fields = {
        "user_id": user_id,
        "amount": Decimal("10.00"),
        "description": "Receipt",
        "category": "Other",
        "date": dt.date(2026, 10, 1),
        "merchant": None,
        "payment_method": None,
        "receipt_url": None,
        "extracted_data": {},
        "processing_status": ProcessingStatus.COMPLETED,
        "ai_confidence": 0.85,
        "needs_review": False,
    }
    fields.update(overrides)
    stored = insert_expense(SessionLocal, fields)
    assert isinstance(stored, Expense)
    return stored


def test_list_expenses_filters_and_orders_newest_first():
    _expense("u-1", description="DMart", category="Groceries", date=dt.date(2026, 9, 1))
    _expense("u-1", description="Swiggy order", category="Dining", date=dt.date(2026, 10, 5))
    _expense("u-1", description="Metro card", merchant="Namma Metro", category="Transportation")
    _expense("u-2", description="Someone else", category="Dining")
    client = TestClient(create_app())

    resp = client.get("/api/users/u-1/expenses")
    assert resp.status_code == 200
    assert [e["description"] for e in resp.json()] == ["Swiggy order", "Metro card", "DMart"]

    resp = client.get("/api/users/u-1/expenses", params={"category": "Dining"})
    assert [e["description"] for e in resp.json()] == ["Swiggy order"]

    resp = client.get("/api/users/u-1/expenses", params={"category": "All"})
    assert len(resp.json()) == 3

    resp = client.get("/api/users/u-1/expenses", params={"search": "namma"})
    assert [e["description"] for e in resp.json()] == ["Metro card"]

    resp = client.get(
        "/api/users/u-1/expenses",
        params={"date_from": "2026-09-15", "date_to": "2026-10-02"},
    )
    assert [e["description"] for e in resp.json()] == ["Metro card"]

    resp = client.get("/api/users/u-1/expenses", params={"limit": 1})
    assert len(resp.json()) == 1


def test_get_expense_and_missing_expense():
    expense = _expense("u-1", description="Cafe Coffee Day")
    client = TestClient(create_app())

    resp = client.get(f"/api/expenses/{expense.id}")
    assert resp.status_code == 200
    assert resp.json()["description"] == "Cafe Coffee Day"
    assert resp.json()["amount"] == "10.00"

    resp = client.get(f"/api/expenses/{uuid.uuid4()}")
    assert resp.status_code == 404


def test_editing_amount_clears_review_flag():
    expense = _expense(
        "u-1",
        description="Receipt Upload",
        processing_status=ProcessingStatus.FAILED,
        ai_confidence=0.1,
        needs_review=True,
    )
    client = TestClient(create_app())

    resp = client.patch(
        f"/api/expenses/{expense.id}",
        json={"amount": "412.50", "merchant": "  Reliance Fresh ", "category": ""},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["amount"] == "412.50"
    assert body["needs_review"] is False
    assert body["processing_status"] == "completed"
    assert body["merchant"] == "Reliance Fresh"
    assert body["category"] is None
    assert body["description"] == "Receipt Upload"


def test_editing_text_only_keeps_review_flag():
    expense = _expense("u-1", needs_review=True, processing_status=ProcessingStatus.FAILED)
    client = TestClient(create_app())

    resp = client.patch(f"/api/expenses/{expense.id}", json={"description": "Lunch"})

    assert resp.status_code == 200
    assert resp.json()["needs_review"] is True
    assert resp.json()["processing_status"] == "failed"


def test_update_rejects_non_positive_or_null_amount():
    expense = _expense("u-1")
    client = TestClient(create_app())

    assert client.patch(f"/api/expenses/{expense.id}", json={"amount": 0}).status_code == 422
    assert client.patch(f"/api/expenses/{expense.id}", json={"amount": None}).status_code == 400
    assert client.patch(f"/api/expenses/{expense.id}", json={"date": None}).status_code == 400
    assert (
        client.patch(f"/api/expenses/{expense.id}", json={"merchant": "m" * 201}).status_code
        == 422
    )


def test_delete_expense_is_idempotent():
    expense = _expense("u-1")
    client = TestClient(create_app())

    assert client.delete(f"/api/expenses/{expense.id}").status_code == 204
    assert client.delete(f"/api/expenses/{expense.id}").status_code == 204
    assert client.get(f"/api/expenses/{expense.id}").status_code == 404


def test_categories_endpoint_seeds_defaults():
    client = TestClient(create_app())

    resp = client.get("/api/users/u-new/categories")

    assert resp.status_code == 200
    assert [c["name"] for c in resp.json()] == list(DEFAULT_CATEGORY_NAMES)
    assert all(c["is_system"] for c in resp.json())

    again = client.get("/api/users/u-new/categories")
    assert len(again.json()) == len(DEFAULT_CATEGORY_NAMES)
