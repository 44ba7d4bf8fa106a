from __future__ import annotations

import uuid

from pydantic import BaseModel


class CategoryOut(BaseModel):
    id: uuid.UUID
    user_id: str
    name: str
    icon: str | None
    color: str | None
    is_system: bool
    sort_order: int
