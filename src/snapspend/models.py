"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from snapspend.modules.categories.models import Category  # noqa: F401
from snapspend.modules.expenses.models import Expense  # noqa: F401
from snapspend.modules.identity.models import User  # noqa: F401
