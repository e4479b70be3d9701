"""initial parent calls schema

Revision ID: 0001_parent_calls
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_parent_calls"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "enrollments",
        sa.Column("enrollment_id", sa.String(), nullable=False),
        sa.Column("child_id", sa.String(), nullable=True),
        sa.Column("coach_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("enrollment_id"),
    )
    op.create_index("ix_enrollments_child_id", "enrollments", ["child_id"])
    op.create_index("ix_enrollments_coach_id", "enrollments", ["coach_id"])

    op.create_table(
        "parent_calls",
        sa.Column("call_id", sa.String(), nullable=False),
        sa.Column("enrollment_id", sa.String(), nullable=False),
        sa.Column("initiated_by", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.enrollment_id"]),
        sa.PrimaryKeyConstraint("call_id"),
        sa.CheckConstraint(
            "(status = 'completed') = (completed_at IS NOT NULL)",
            name="ck_parent_calls_completed_at",
        ),
    )
    op.create_index("ix_parent_calls_status", "parent_calls", ["status"])
    # Quota counts scan (enrollment_id, requested_at >= window start).
    op.create_index("ix_parent_calls_enrollment_requested", "parent_calls", ["enrollment_id", "requested_at"])

    op.create_table(
        "site_settings",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )
    op.execute("INSERT INTO site_settings (key, value) VALUES ('parent_call_max_per_month', '1'::jsonb)")


def downgrade() -> None:
    op.drop_table("site_settings")
    op.drop_index("ix_parent_calls_enrollment_requested", table_name="parent_calls")
    op.drop_index("ix_parent_calls_status", table_name="parent_calls")
    op.drop_table("parent_calls")
    op.drop_index("ix_enrollments_coach_id", table_name="enrollments")
    op.drop_index("ix_enrollments_child_id", table_name="enrollments")
    op.drop_table("enrollments")
