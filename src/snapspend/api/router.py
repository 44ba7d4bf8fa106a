from __future__ import annotations

from fastapi import APIRouter

from snapspend.modules.categories.api import router as categories_router
from snapspend.modules.expenses.api import router as expenses_router
from snapspend.modules.receipts.api import router as receipts_router

router = APIRouter()

router.include_router(receipts_router, prefix="/api")
router.include_router(expenses_router, prefix="/api")
router.include_router(categories_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
