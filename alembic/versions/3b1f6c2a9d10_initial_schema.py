"""initial schema

Revision ID: 3b1f6c2a9d10
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3b1f6c2a9d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "identity_user",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
    )

    op.create_table(
        "categories_category",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )
    op.create_index("ix_categories_category_user_id", "categories_category", ["user_id"])

    op.create_table(
        "expenses_expense",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("merchant", sa.String(length=200), nullable=True),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("receipt_url", sa.Text(), nullable=True),
        sa.Column("extracted_data", sa.JSON(), nullable=False),
        sa.Column("processing_status", sa.String(length=9), nullable=False),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_expenses_expense_user_id", "expenses_expense", ["user_id"])
    op.create_index("ix_expenses_expense_category", "expenses_expense", ["category"])
    op.create_index("ix_expenses_expense_date", "expenses_expense", ["date"])
    op.create_index(
        "ix_expenses_expense_processing_status", "expenses_expense", ["processing_status"]
    )


def downgrade() -> None:
    op.drop_index("ix_expenses_expense_processing_status", table_name="expenses_expense")
    op.drop_index("ix_expenses_expense_date", table_name="expenses_expense")
    op.drop_index("ix_expenses_expense_category", table_name="expenses_expense")
    op.drop_index("ix_expenses_expense_user_id", table_name="expenses_expense")
    op.drop_table("expenses_expense")
    op.drop_index("ix_categories_category_user_id", table_name="categories_category")
    op.drop_table("categories_category")
    op.drop_table("identity_user")
