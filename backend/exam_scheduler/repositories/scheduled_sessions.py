"""Database-backed repository for scheduled study sessions."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import ScheduleAuditEventModel, ScheduledSessionModel
from ..db.session import supports_row_locks
from ..schedule_models import (
    AssessmentKind,
    DifficultyLevel,
    Priority,
    ScheduledSession,
    SessionMethod,
    SessionStatus,
)


class ScheduledSessionRepository:
    """Row-level persistence for sessions; budget rules live in the store above it."""

    def list_range(
        self,
        session: Session,
        user_id: str,
        exam_id: int,
        start: date,
        end: date,
        *,
        for_update: bool = False,
    ) -> List[ScheduledSessionModel]:
        stmt = (
            select(ScheduledSessionModel)
            .where(
                ScheduledSessionModel.user_id == user_id,
                ScheduledSessionModel.exam_id == exam_id,
                ScheduledSessionModel.session_date >= start,
                ScheduledSessionModel.session_date <= end,
            )
            .order_by(
                ScheduledSessionModel.session_date.asc(),
                ScheduledSessionModel.time_of_day.asc(),
                ScheduledSessionModel.created_at.asc(),
            )
        )
        if for_update and supports_row_locks(session):
            stmt = stmt.with_for_update()
        return list(session.execute(stmt).scalars().all())

    def get(self, session: Session, session_id: str, *, for_update: bool = False) -> Optional[ScheduledSessionModel]:
        stmt = select(ScheduledSessionModel).where(ScheduledSessionModel.id == session_id)
        if for_update and supports_row_locks(session):
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    def replace_open_sessions(
        self,
        session: Session,
        user_id: str,
        exam_id: int,
        start: date,
        end: date,
        sessions: Iterable[ScheduledSession],
    ) -> int:
        """Delete every non-completed session in ``[start, end]`` and insert ``sessions``."""
        result = session.execute(
            delete(ScheduledSessionModel)
            .where(
                ScheduledSessionModel.user_id == user_id,
                ScheduledSessionModel.exam_id == exam_id,
                ScheduledSessionModel.session_date >= start,
                ScheduledSessionModel.session_date <= end,
                ScheduledSessionModel.status != SessionStatus.COMPLETED.value,
            )
            .execution_options(synchronize_session=False)
        )
        for entry in sessions:
            session.add(self._to_model(entry))
        session.flush()
        return int(result.rowcount or 0)

    def minutes_by_date(self, models: Iterable[ScheduledSessionModel]) -> Dict[date, int]:
        totals: Dict[date, int] = defaultdict(int)
        for model in models:
            totals[model.session_date] += model.duration_minutes
        return dict(totals)

    def apply(self, model: ScheduledSessionModel, updated: ScheduledSession) -> None:
        model.session_date = updated.session_date
        model.week_start_date = updated.week_start_date
        model.time_of_day = updated.time_of_day
        model.status = updated.status.value
        model.completed_at = updated.completed_at
        model.updated_at = datetime.now(timezone.utc)

    def record_audit(
        self,
        session: Session,
        user_id: str,
        exam_id: Optional[int],
        event_type: str,
        payload: Dict[str, object],
    ) -> None:
        session.add(
            ScheduleAuditEventModel(
                user_id=user_id,
                exam_id=exam_id,
                event_type=event_type,
                payload=dict(payload),
            )
        )
        session.flush()

    @staticmethod
    def _to_model(entry: ScheduledSession) -> ScheduledSessionModel:
        return ScheduledSessionModel(
            id=entry.id,
            user_id=entry.owner_user_id,
            exam_id=entry.exam_id,
            session_date=entry.session_date,
            week_start_date=entry.week_start_date,
            subject=entry.subject,
            topic=entry.topic,
            topic_id=entry.topic_id,
            method=entry.method.value,
            test_kind=entry.test_kind.value if entry.test_kind else None,
            priority=entry.priority.value,
            duration_minutes=entry.duration_minutes,
            time_of_day=entry.time_of_day,
            status=entry.status.value,
            difficulty_level=entry.difficulty_level.value if entry.difficulty_level else None,
            question_count=entry.question_count,
            time_limit_minutes=entry.time_limit_minutes,
            goal_note=entry.goal_note,
            completed_at=entry.completed_at,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    @staticmethod
    def to_domain(model: ScheduledSessionModel) -> ScheduledSession:
        return ScheduledSession(
            id=model.id,
            owner_user_id=model.user_id,
            exam_id=model.exam_id,
            session_date=model.session_date,
            week_start_date=model.week_start_date,
            subject=model.subject,
            topic=model.topic,
            topic_id=model.topic_id,
            method=SessionMethod(model.method),
            test_kind=AssessmentKind(model.test_kind) if model.test_kind else None,
            priority=Priority(model.priority),
            duration_minutes=model.duration_minutes,
            time_of_day=model.time_of_day,
            status=SessionStatus(model.status),
            difficulty_level=DifficultyLevel(model.difficulty_level) if model.difficulty_level else None,
            question_count=model.question_count,
            time_limit_minutes=model.time_limit_minutes,
            goal_note=model.goal_note,
            completed_at=model.completed_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


scheduled_sessions = ScheduledSessionRepository()

__all__ = ["ScheduledSessionRepository", "scheduled_sessions"]
