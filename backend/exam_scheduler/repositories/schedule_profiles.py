"""Database-backed scheduling profile repository."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import ScheduleProfileModel
from ..schedule_models import CurrentLevel, SchedulingProfile, StudyStyle, Weekday


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


class ScheduleProfileRepository:
    """Reads and writes one profile row per (user, exam)."""

    def get(self, session: Session, user_id: str, exam_id: int) -> SchedulingProfile | None:
        model = self._get_model(session, user_id, exam_id)
        if model is None:
            return None
        return self._to_domain(model)

    def upsert(self, session: Session, user_id: str, profile: SchedulingProfile) -> SchedulingProfile:
        normalized = _normalize_user_id(user_id)
        model = self._get_model(session, normalized, profile.exam_id)
        if model is None:
            model = ScheduleProfileModel(user_id=normalized, exam_id=profile.exam_id)
            session.add(model)

        model.daily_available_hours = [float(value) for value in profile.daily_available_hours]
        model.coaching_start_time = profile.coaching_start_time.strip()
        model.coaching_end_time = profile.coaching_end_time.strip()
        model.exam_date = profile.exam_date
        model.current_level = profile.current_level.value
        model.study_style = profile.study_style.value
        model.subject_confidence = {name.strip(): int(value) for name, value in profile.subject_confidence.items()}
        model.preferred_mock_day = profile.preferred_mock_day.value
        model.weakness_test_day = profile.weakness_test_day.value if profile.weakness_test_day else None
        model.updated_at = datetime.now(timezone.utc)
        session.flush()
        return self._to_domain(model)

    def delete(self, session: Session, user_id: str, exam_id: int) -> bool:
        model = self._get_model(session, user_id, exam_id)
        if model is None:
            return False
        session.delete(model)
        session.flush()
        return True

    def _get_model(self, session: Session, user_id: str, exam_id: int) -> ScheduleProfileModel | None:
        stmt = select(ScheduleProfileModel).where(
            ScheduleProfileModel.user_id == _normalize_user_id(user_id),
            ScheduleProfileModel.exam_id == exam_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(model: ScheduleProfileModel) -> SchedulingProfile:
        return SchedulingProfile(
            exam_id=model.exam_id,
            daily_available_hours=list(model.daily_available_hours or []),
            coaching_start_time=model.coaching_start_time,
            coaching_end_time=model.coaching_end_time,
            exam_date=model.exam_date,
            current_level=CurrentLevel(model.current_level),
            study_style=StudyStyle(model.study_style),
            subject_confidence=dict(model.subject_confidence or {}),
            preferred_mock_day=Weekday(model.preferred_mock_day),
            weakness_test_day=Weekday(model.weakness_test_day) if model.weakness_test_day else None,
            updated_at=model.updated_at,
        )


schedule_profiles = ScheduleProfileRepository()

__all__ = ["ScheduleProfileRepository", "schedule_profiles"]
