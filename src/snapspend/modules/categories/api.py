from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from snapspend.core.db import db_session
from snapspend.modules.categories.schemas import CategoryOut
from snapspend.modules.categories.service import ensure_default_categories, list_categories

router = APIRouter(tags=["categories"])


@router.get("/users/{user_id}/categories", response_model=list[CategoryOut])
def list_categories_endpoint(
    user_id: str,
    session: Session = Depends(db_session),
) -> list[CategoryOut]:
    ensure_default_categories(session, user_id=user_id)
    categories = list_categories(session, user_id=user_id)
    return [CategoryOut.model_validate(c, from_attributes=True) for c in categories]
