from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from snapspend.core.db import session_factory
from snapspend.core.logging import get_logger, log_event
from snapspend.modules.expenses.models import USER_ID_MAX_LENGTH
from snapspend.modules.receipts import pipeline
from snapspend.modules.receipts.schemas import ProcessReceiptIn

router = APIRouter(tags=["receipts"])
logger = get_logger(__name__)


def _missing_fields() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Missing required fields"})


def _user_id_too_long() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": f"userId must be at most {USER_ID_MAX_LENGTH} characters"},
    )


@router.post("/process-receipt")
def process_receipt_endpoint(
    payload: ProcessReceiptIn,
    factory: sessionmaker = Depends(session_factory),
) -> JSONResponse:
    image = payload.image_text()
    user_id = payload.user_id_text()
    if not image or not user_id:
        return _missing_fields()
    if len(user_id) > USER_ID_MAX_LENGTH:
        return _user_id_too_long()

    log_event(
        logger,
        "upload.received",
        user_id=user_id,
        source="json",
        payload_chars=len(image),
    )
    outcome = pipeline.process_receipt(
        image=image,
        user_id=user_id,
        session_factory=factory,
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.post("/process-receipt/upload")
async def upload_receipt_endpoint(
    file: UploadFile = File(...),
    user_id: str = Form(...),
    factory: sessionmaker = Depends(session_factory),
) -> JSONResponse:
    body = await file.read()
    user_id = user_id.strip()
    if not body or not user_id:
        return _missing_fields()
    if len(user_id) > USER_ID_MAX_LENGTH:
        return _user_id_too_long()

    log_event(
        logger,
        "upload.received",
        user_id=user_id,
        source="multipart",
        filename=file.filename or "receipt.bin",
        content_type=file.content_type,
        byte_size=len(body),
    )
    outcome = await run_in_threadpool(
        pipeline.process_receipt,
        image=body,
        user_id=user_id,
        session_factory=factory,
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
