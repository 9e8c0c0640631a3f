"""Scheduling profiles, scheduled sessions and the audit trail."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20241101_01_schedule_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "schedule_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("exam_id", sa.Integer(), nullable=False),
        sa.Column("daily_available_hours", sa.JSON(), nullable=False),
        sa.Column("coaching_start_time", sa.String(length=5), nullable=False),
        sa.Column("coaching_end_time", sa.String(length=5), nullable=False),
        sa.Column("exam_date", sa.Date(), nullable=True),
        sa.Column("current_level", sa.String(length=16), nullable=False),
        sa.Column("study_style", sa.String(length=16), nullable=False),
        sa.Column("subject_confidence", sa.JSON(), nullable=False),
        sa.Column("preferred_mock_day", sa.String(length=16), nullable=False),
        sa.Column("weakness_test_day", sa.String(length=16), nullable=True),
        sa.UniqueConstraint("user_id", "exam_id", name="uq_schedule_profile_user_exam"),
    )

    op.create_table(
        "scheduled_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("exam_id", sa.Integer(), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("subject", sa.String(length=128), nullable=False),
        sa.Column("topic", sa.Text(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=True),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("test_kind", sa.String(length=32), nullable=True),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("time_of_day", sa.String(length=5), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("difficulty_level", sa.String(length=16), nullable=True),
        sa.Column("question_count", sa.Integer(), nullable=True),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("goal_note", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_scheduled_sessions_owner_date",
        "scheduled_sessions",
        ["user_id", "exam_id", "session_date"],
    )
    op.create_index(
        "ix_scheduled_sessions_week",
        "scheduled_sessions",
        ["user_id", "exam_id", "week_start_date"],
    )

    op.create_table(
        "schedule_audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("exam_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_schedule_audit_events_user", "schedule_audit_events", ["user_id", "exam_id"])


def downgrade() -> None:
    op.drop_index("ix_schedule_audit_events_user", table_name="schedule_audit_events")
    op.drop_table("schedule_audit_events")
    op.drop_index("ix_scheduled_sessions_week", table_name="scheduled_sessions")
    op.drop_index("ix_scheduled_sessions_owner_date", table_name="scheduled_sessions")
    op.drop_table("scheduled_sessions")
    op.drop_table("schedule_profiles")
