from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessReceiptIn(BaseModel):
    """Raw upload body; wrongly typed fields are treated as missing by the endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    image: Any = None
    user_id: Any = Field(default=None, alias="userId")

    def image_text(self) -> str:
        return self.image if isinstance(self.image, str) else ""

    def user_id_text(self) -> str:
        if isinstance(self.user_id, bool) or not isinstance(self.user_id, (str, int)):
            return ""
        return str(self.user_id).strip()
