from __future__ import annotations

# Register every table on Base.metadata before create_all.
import snapspend.models  # noqa: F401
from snapspend.core.config import settings
from snapspend.core.db import engine
from snapspend.core.logging import get_logger, log_event
from snapspend.core.models import Base

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)
        log_event(logger, "bootstrap.schema_created", database_url=settings.database_url)
