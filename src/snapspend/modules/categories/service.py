from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snapspend.core.logging import get_logger, log_event
from snapspend.modules.categories.models import Category

logger = get_logger(__name__)


@dataclass(frozen=True)
class DefaultCategory:
    name: str
    icon: str
    color: str


DEFAULT_CATEGORIES: tuple[DefaultCategory, ...] = (
    DefaultCategory("Groceries", "shopping-cart", "#22c55e"),
    DefaultCategory("Dining", "utensils", "#f97316"),
    DefaultCategory("Transportation", "car", "#3b82f6"),
    DefaultCategory("Shopping", "shopping-bag", "#a855f7"),
    DefaultCategory("Healthcare", "heart", "#ef4444"),
    DefaultCategory("Entertainment", "popcorn", "#ec4899"),
    DefaultCategory("Utilities", "zap", "#eab308"),
    DefaultCategory("Travel", "plane", "#06b6d4"),
    DefaultCategory("Gas", "fuel", "#64748b"),
    DefaultCategory("Other", "more-horizontal", "#9ca3af"),
)

DEFAULT_CATEGORY_NAMES: tuple[str, ...] = tuple(c.name for c in DEFAULT_CATEGORIES)
FALLBACK_CATEGORY = "Other"


def canonical_category(value: str | None) -> str:
    """Map free-form category text onto the taxonomy spelling when it matches."""
    if not isinstance(value, str) or not value.strip():
        return FALLBACK_CATEGORY
    cleaned = value.strip()
    for name in DEFAULT_CATEGORY_NAMES:
        if name.lower() == cleaned.lower():
            return name
    return cleaned[:50]


def list_categories(session: Session, *, user_id: str) -> list[Category]:
    return list(
        session.scalars(
            select(Category)
            .where(Category.user_id == user_id)
            .order_by(Category.sort_order, Category.name)
        )
    )


def ensure_default_categories(session: Session, *, user_id: str) -> int:
    """Seed the system categories for a user. Safe to call on every request."""
    existing = {c.name for c in list_categories(session, user_id=user_id)}
    created = 0
    for idx, default in enumerate(DEFAULT_CATEGORIES):
        if default.name in existing:
            continue
        session.add(
            Category(
                user_id=user_id,
                name=default.name,
                icon=default.icon,
                color=default.color,
                is_system=True,
                sort_order=idx,
            )
        )
        try:
            session.commit()
        except IntegrityError:
            # Seeded concurrently by another request.
            session.rollback()
            continue
        created += 1

    if created:
        log_event(logger, "categories.seeded", user_id=user_id, created=created)
    return created
