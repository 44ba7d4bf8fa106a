from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _finite_number(value: Any) -> float | None:
    """Best-effort numeric read; anything unusable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        for prefix in ("₹", "Rs.", "Rs", "$", "€", "£"):
            if value.startswith(prefix):
                value = value[len(prefix) :].strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


class LineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: str = ""
    quantity: float = 1.0
    price: float = 0.0

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return _optional_text(v) or ""

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v: Any) -> float:
        number = _finite_number(v)
        if number is None or number < 0:
            return 1.0
        return number

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        number = _finite_number(v)
        return 0.0 if number is None else number


class ReceiptCandidate(BaseModel):
    """Structured guess at receipt contents, prior to reconciliation."""

    model_config = ConfigDict(extra="ignore")

    store_name: str | None = None
    date: str | None = None
    items: list[LineItem] = Field(default_factory=list)
    subtotal: float | None = None
    tax: float | None = None
    total: float | None = None
    category: str | None = None

    @field_validator("store_name", "date", "category", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("subtotal", "tax", "total", mode="before")
    @classmethod
    def _number(cls, v: Any) -> float | None:
        return _finite_number(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, LineItem))]
