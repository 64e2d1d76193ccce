"""add hot-path indexes for customer listing and queue health

Revision ID: 0003_hot_path_indexes
Revises: 0002_review_workflow
Create Date: 2026-10-14
"""

from alembic import op


revision = "0003_hot_path_indexes"
down_revision = "0002_review_workflow"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "ix_payments_user_id_created_at",
        "payments",
        ["user_id", "created_at"],
    )
    op.create_index(
        "ix_payments_status_created_at",
        "payments",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_payments_status_created_at", table_name="payments")
    op.drop_index("ix_payments_user_id_created_at", table_name="payments")
