from __future__ import annotations

import os

import pytest

# Set env before any snapspend imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.snapspend_test.db")
os.environ["GEMINI_API_KEY"] = ""


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import snapspend.models  # noqa: F401
    from snapspend.core.db import engine
    from snapspend.core.models import Base

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield
