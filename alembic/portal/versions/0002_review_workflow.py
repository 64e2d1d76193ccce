"""add trash, assignment, escalation, notes and audit log

Revision ID: 0002_review_workflow
Revises: 0001_portal
Create Date: 2026-10-09
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_review_workflow"
down_revision = "0001_portal"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("payments", sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("payments", sa.Column("deleted_by_user_id", sa.String(), nullable=True))
    op.add_column("payments", sa.Column("deleted_by_name", sa.String(), nullable=True))
    op.add_column("payments", sa.Column("assigned_to_user_id", sa.String(), nullable=True))
    op.add_column("payments", sa.Column("assigned_to_name", sa.String(), nullable=True))
    op.add_column(
        "payments",
        sa.Column("escalated", sa.Boolean(), server_default=sa.false(), nullable=False),
    )
    op.add_column("payments", sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("payments", sa.Column("escalation_notes", sa.String(length=1000), nullable=True))
    op.create_index("ix_payments_deleted_at", "payments", ["deleted_at"])
    op.create_index("ix_payments_assigned_to_user_id", "payments", ["assigned_to_user_id"])
    op.create_index("ix_payments_escalated", "payments", ["escalated"])

    op.create_table(
        "payment_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("text", sa.String(length=1000), nullable=False),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("author_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("mentions", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_notes_payment_id", "payment_notes", ["payment_id"])

    op.create_table(
        "payment_audit_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=False),
        sa.Column("actor_name", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("details", sa.String(length=1000), nullable=True),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_audit_log_payment_id", "payment_audit_log", ["payment_id"])
    op.create_index("ix_payment_audit_log_action", "payment_audit_log", ["action"])


def downgrade() -> None:
    op.drop_index("ix_payment_audit_log_action", table_name="payment_audit_log")
    op.drop_index("ix_payment_audit_log_payment_id", table_name="payment_audit_log")
    op.drop_table("payment_audit_log")
    op.drop_index("ix_payment_notes_payment_id", table_name="payment_notes")
    op.drop_table("payment_notes")
    op.drop_index("ix_payments_escalated", table_name="payments")
    op.drop_index("ix_payments_assigned_to_user_id", table_name="payments")
    op.drop_index("ix_payments_deleted_at", table_name="payments")
    for column in (
        "escalation_notes",
        "escalated_at",
        "escalated",
        "assigned_to_name",
        "assigned_to_user_id",
        "deleted_by_name",
        "deleted_by_user_id",
        "deleted_at",
    ):
        op.drop_column("payments", column)
