"""ORM models backing the scheduler persistence layer."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON


class ScheduleProfileModel(TimestampMixin, Base):
    __tablename__ = "schedule_profiles"
    __table_args__ = (UniqueConstraint("user_id", "exam_id", name="uq_schedule_profile_user_exam"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    exam_id: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_available_hours: Mapped[list[float]] = mapped_column(JSONType, default=list, nullable=False)
    coaching_start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    coaching_end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    exam_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    current_level: Mapped[str] = mapped_column(String(16), nullable=False)
    study_style: Mapped[str] = mapped_column(String(16), nullable=False)
    subject_confidence: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict, nullable=False)
    preferred_mock_day: Mapped[str] = mapped_column(String(16), nullable=False)
    weakness_test_day: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)


class ScheduledSessionModel(TimestampMixin, Base):
    __tablename__ = "scheduled_sessions"
    __table_args__ = (
        Index("ix_scheduled_sessions_owner_date", "user_id", "exam_id", "session_date"),
        Index("ix_scheduled_sessions_week", "user_id", "exam_id", "week_start_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    exam_id: Mapped[int] = mapped_column(Integer, nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    subject: Mapped[str] = mapped_column(String(128), nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    topic_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    test_kind: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="PENDING", nullable=False)
    difficulty_level: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    question_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    time_limit_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    goal_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ScheduleAuditEventModel(Base):
    __tablename__ = "schedule_audit_events"
    __table_args__ = (Index("ix_schedule_audit_events_user", "user_id", "exam_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    exam_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )


__all__ = [
    "ScheduleAuditEventModel",
    "ScheduleProfileModel",
    "ScheduledSessionModel",
]
