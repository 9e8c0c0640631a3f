from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import pytest
from sqlalchemy import select

from exam_scheduler.availability import parse_clock
from exam_scheduler.config import get_settings
from exam_scheduler.db.base import Base
from exam_scheduler.db.models import ScheduleAuditEventModel
from exam_scheduler.db.session import dispose_engine, get_engine, session_scope
from exam_scheduler.schedule_models import (
    AssessmentKind,
    CurrentLevel,
    DifficultyLevel,
    Priority,
    RankedTopic,
    ScheduledSession,
    SchedulingProfile,
    SessionMethod,
    SessionStatus,
    StudyStyle,
    Weekday,
)
from exam_scheduler.telemetry import TelemetryEvent, register_listener, unregister_listener

# 2024-06-03 is a Monday.
WEEK_START = date(2024, 6, 3)
TODAY = date(2024, 6, 1)


@pytest.fixture()
def scheduler_db(tmp_path, monkeypatch):
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", f"sqlite:///{tmp_path / 'scheduler.sqlite'}")
    get_settings.cache_clear()
    dispose_engine()
    Base.metadata.create_all(get_engine())
    yield
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture()
def collected_events():
    events: List[TelemetryEvent] = []
    register_listener(events.append)
    yield events
    unregister_listener(events.append)


def make_profile(**overrides: object) -> SchedulingProfile:
    values: Dict[str, object] = {
        "exam_id": 7,
        "daily_available_hours": [2, 2, 2, 2, 2, 4, 4],
        "coaching_start_time": "00:00",
        "coaching_end_time": "00:00",
        "exam_date": None,
        "current_level": CurrentLevel.NEW,
        "study_style": StudyStyle.CONCEPT_FIRST,
        "subject_confidence": {"Math": 1, "Physics": 2},
        "preferred_mock_day": Weekday.SATURDAY,
        "weakness_test_day": None,
    }
    values.update(overrides)
    return SchedulingProfile(**values)


def ranked(topic_id: int, score: float, subject: str = "Math", name: Optional[str] = None) -> RankedTopic:
    return RankedTopic(topic_id=topic_id, subject=subject, weakness_score=score, topic=name)


def make_session(
    on: date,
    minutes: int,
    *,
    user_id: str = "learner-1",
    exam_id: int = 7,
    method: SessionMethod = SessionMethod.STUDY,
    status: SessionStatus = SessionStatus.PENDING,
    priority: Priority = Priority.MEDIUM,
    topic_id: Optional[int] = 1,
    time_of_day: str = "06:00",
) -> ScheduledSession:
    test_fields: Dict[str, object] = {}
    if method is SessionMethod.TEST:
        test_fields = {
            "test_kind": AssessmentKind.CONCEPT_QUIZ,
            "difficulty_level": DifficultyLevel.EASY,
            "question_count": max(5, minutes // 2),
            "time_limit_minutes": minutes,
        }
    return ScheduledSession(
        id=str(uuid4()),
        owner_user_id=user_id,
        exam_id=exam_id,
        session_date=on,
        week_start_date=WEEK_START,
        subject="Math",
        topic=f"Topic {topic_id}",
        topic_id=topic_id,
        method=method,
        priority=priority,
        duration_minutes=minutes,
        time_of_day=time_of_day,
        status=status,
        **test_fields,
    )


def audit_rows(user_id: str) -> List[Dict[str, object]]:
    with session_scope(commit=False) as session:
        stmt = (
            select(ScheduleAuditEventModel)
            .where(ScheduleAuditEventModel.user_id == user_id)
            .order_by(ScheduleAuditEventModel.created_at.desc())
        )
        return [
            {"event_type": row.event_type, "exam_id": row.exam_id, "payload": dict(row.payload or {})}
            for row in session.execute(stmt).scalars()
        ]


def overlapping_slots(sessions: List[ScheduledSession]) -> List[Tuple[str, str]]:
    """Pairs of sessions on one day whose clock intervals intersect."""
    spans = sorted(
        (parse_clock(entry.time_of_day), parse_clock(entry.time_of_day) + entry.duration_minutes, entry.id)
        for entry in sessions
    )
    clashes: List[Tuple[str, str]] = []
    for (_, end, first), (start, _, second) in zip(spans, spans[1:]):
        if start < end:
            clashes.append((first, second))
    return clashes
