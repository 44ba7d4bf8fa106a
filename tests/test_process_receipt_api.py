from __future__ import annotations

import base64
import json

from fastapi.testclient import TestClient
from sqlalchemy import select

from snapspend.core.config import settings
from snapspend.core.db import SessionLocal
from snapspend.main import create_app
from snapspend.modules.expenses.models import Expense
from snapspend.modules.receipts import pipeline

JPEG = b"\xff\xd8\xff\xe0fake-jpeg-body"
DATA_URI = "data:image/jpeg;base64," + base64.b64encode(JPEG).decode()


def _stub_backends(monkeypatch, answers: dict[str, str | Exception]) -> list[str]:
    calls: list[str] = []

    def _invoke(backend_id: str, image, _prompt: str) -> str:
        calls.append(backend_id)
        assert image.mime_type == "image/jpeg"
        answer = answers[backend_id]
        if isinstance(answer, Exception):
            raise answer
        return answer

    monkeypatch.setattr(settings, "extraction_models", list(answers))
    monkeypatch.setattr(pipeline, "invoke_backend", _invoke)
    return calls


def test_process_receipt_requires_image_and_user():
    client = TestClient(create_app())

    for payload in ({}, {"userId": "u-1"}, {"image": DATA_URI}, {"image": "", "userId": "u-1"}):
        resp = client.post("/api/process-receipt", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing required fields"}


def test_process_receipt_wrongly_typed_fields_count_as_missing():
    client = TestClient(create_app())

    for payload in (
        {"image": 123, "userId": "u-1"},
        {"image": ["x"], "userId": "u-1"},
        {"image": DATA_URI, "userId": {"id": 1}},
        {"image": DATA_URI, "userId": True},
    ):
        resp = client.post("/api/process-receipt", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing required fields"}


def test_process_receipt_rejects_overlong_user_id(monkeypatch):
    calls = _stub_backends(monkeypatch, {"gemini-a": "unused"})
    client = TestClient(create_app())

    resp = client.post("/api/process-receipt", json={"image": DATA_URI, "userId": "u" * 65})
    assert resp.status_code == 400
    assert "userId" in resp.json()["error"]

    resp = client.post(
        "/api/process-receipt/upload",
        files={"file": ("receipt.jpg", JPEG, "image/jpeg")},
        data={"user_id": "u" * 65},
    )
    assert resp.status_code == 400
    assert calls == []


def test_process_receipt_json_endpoint(monkeypatch):
    calls = _stub_backends(
        monkeypatch,
        {
            "gemini-a": RuntimeError("quota exceeded"),
            "gemini-b": json.dumps({"store_name": "Zomato", "total": 349, "category": "Dining"}),
            "gemini-c": "never asked",
        },
    )
    client = TestClient(create_app())

    resp = client.post("/api/process-receipt", json={"image": DATA_URI, "userId": 42})

    assert resp.status_code == 200
    body = resp.json()
    assert calls == ["gemini-a", "gemini-b"]
    assert body["success"] is True
    assert body["expense"]["user_id"] == "42"
    assert body["expense"]["amount"] == "349.00"
    assert body["expense"]["category"] == "Dining"
    assert body["debug"]["modelsAttempted"] == 2
    assert body["debug"]["lastError"] == "quota exceeded"
    assert resp.headers.get("X-Request-ID")


def test_process_receipt_multipart_upload(monkeypatch):
    _stub_backends(monkeypatch, {"gemini-a": '{"store_name": "HP Petrol", "total": 1500}'})
    client = TestClient(create_app())

    resp = client.post(
        "/api/process-receipt/upload",
        files={"file": ("receipt.jpg", JPEG, "image/jpeg")},
        data={"user_id": "u-upload"},
    )

    assert resp.status_code == 200
    assert resp.json()["expense"]["amount"] == "1500.00"

    with SessionLocal() as session:
        stored = list(session.scalars(select(Expense).where(Expense.user_id == "u-upload")))
    assert len(stored) == 1
    assert stored[0].merchant == "HP Petrol"


def test_process_receipt_reports_all_models_failing(monkeypatch):
    _stub_backends(
        monkeypatch,
        {"gemini-a": RuntimeError("404 model not found"), "gemini-b": RuntimeError("timeout")},
    )
    client = TestClient(create_app())

    resp = client.post("/api/process-receipt", json={"image": DATA_URI, "userId": "u-2"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["expense"]["amount"] == "10.00"
    assert body["expense"]["processing_status"] == "failed"
    assert body["debug"]["modelsAttempted"] == 2
    assert [a["ok"] for a in body["debug"]["attempts"]] == [False, False]


def test_healthz():
    client = TestClient(create_app())

    resp = client.get("/healthz")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
