"""Moderation models migration.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates students, warnings, locks and appeals tables.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Students carry the denormalized gate fields
    op.create_table(
        "students",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("roll", sa.String(64), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("warning_count", sa.Integer(), nullable=False, server_default="0"),
        # Account-level gate
        sa.Column("account_locked_until", sa.DateTime(), nullable=True),
        sa.Column("account_lock_reason", sa.Text(), nullable=True),
        # Chatbot-only restriction
        sa.Column("chatbot_locked_until", sa.DateTime(), nullable=True),
        sa.Column("chatbot_lock_reason", sa.Text(), nullable=False, server_default=""),
        # Timestamps
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_students_roll", "students", ["roll"], unique=True)

    # Recorded violations
    op.create_table(
        "warnings",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("roll", sa.String(64), nullable=False),
        sa.Column("issuer_roll", sa.String(64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="low"),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_warnings_roll", "warnings", ["roll"])
    op.create_index("ix_warnings_created_at", "warnings", ["created_at"])

    # Lock and unlock audit records
    op.create_table(
        "locks",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("roll", sa.String(64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("locked_by", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_locks_roll", "locks", ["roll"])
    op.create_index("ix_locks_created_at", "locks", ["created_at"])

    # Appeals
    op.create_table(
        "appeals",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("roll", sa.String(64), nullable=False),
        sa.Column("lock_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("admin_response", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["lock_id"], ["locks.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appeals_roll", "appeals", ["roll"])
    op.create_index("ix_appeals_status", "appeals", ["status"])
    op.create_index("ix_appeals_created_at", "appeals", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_appeals_created_at", table_name="appeals")
    op.drop_index("ix_appeals_status", table_name="appeals")
    op.drop_index("ix_appeals_roll", table_name="appeals")
    op.drop_table("appeals")

    op.drop_index("ix_locks_created_at", table_name="locks")
    op.drop_index("ix_locks_roll", table_name="locks")
    op.drop_table("locks")

    op.drop_index("ix_warnings_created_at", table_name="warnings")
    op.drop_index("ix_warnings_roll", table_name="warnings")
    op.drop_table("warnings")

    op.drop_index("ix_students_roll", table_name="students")
    op.drop_table("students")
