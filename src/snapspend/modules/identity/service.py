from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snapspend.core.logging import get_logger, log_event
from snapspend.modules.identity.models import User

logger = get_logger(__name__)


def get_user(session: Session, *, user_id: str) -> User | None:
    return session.scalar(select(User).where(User.id == user_id))


def ensure_user_exists(session: Session, *, user_id: str) -> bool:
    """
    Create the user row if it is missing.

    Returns True when this call created the row. A duplicate-key conflict from a
    concurrent request counts as success.
    """
    if get_user(session, user_id=user_id):
        return False

    session.add(User(id=user_id, email=None, name="App User"))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        log_event(logger, "identity.user.exists", user_id=user_id)
        return False

    log_event(logger, "identity.user.created", user_id=user_id)
    return True
