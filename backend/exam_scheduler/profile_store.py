"""Scheduling profile validation and persistence."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional

from .availability import parse_clock
from .db.session import session_scope
from .errors import FieldViolation, ProfileNotFound, ScheduleValidationError
from .repositories.schedule_profiles import ScheduleProfileRepository, schedule_profiles
from .schedule_models import WEEKDAYS, SchedulingProfile
from .telemetry import emit_event

logger = logging.getLogger(__name__)

MAX_HOURS_PER_DAY = 24
CONFIDENCE_LEVELS = (1, 2, 3)


def validate_profile(profile: SchedulingProfile, today: date) -> List[FieldViolation]:
    """Collect every rule the profile breaks; an empty list means it is valid."""
    violations: List[FieldViolation] = []

    hours = profile.daily_available_hours
    if len(hours) != len(WEEKDAYS):
        violations.append(
            FieldViolation(
                "dailyAvailableHours",
                f"Provide exactly {len(WEEKDAYS)} entries (Monday first); got {len(hours)}.",
            )
        )
    for position, value in enumerate(hours):
        if not 0 <= value <= MAX_HOURS_PER_DAY:
            violations.append(
                FieldViolation(
                    f"dailyAvailableHours[{position}]",
                    f"Hours must be between 0 and {MAX_HOURS_PER_DAY}; got {value}.",
                )
            )

    start = parse_clock(profile.coaching_start_time)
    end = parse_clock(profile.coaching_end_time)
    if start is None:
        violations.append(FieldViolation("coachingStartTime", "Use HH:MM between 00:00 and 23:59."))
    if end is None:
        violations.append(FieldViolation("coachingEndTime", "Use HH:MM between 00:00 and 23:59."))
    if start is not None and end is not None and start > end:
        violations.append(FieldViolation("coachingEndTime", "Coaching must end at or after it starts."))

    if profile.weakness_test_day is not None and profile.weakness_test_day == profile.preferred_mock_day:
        violations.append(
            FieldViolation("weaknessTestDay", "The weakness test day must differ from the preferred mock day.")
        )

    if not profile.subject_confidence:
        violations.append(FieldViolation("subjectConfidence", "Rate at least one subject."))
    seen: set[str] = set()
    for subject, level in profile.subject_confidence.items():
        key = subject.strip().lower()
        if not key:
            violations.append(FieldViolation("subjectConfidence", "Subject names cannot be blank."))
            continue
        if key in seen:
            violations.append(FieldViolation(f"subjectConfidence.{subject}", "Subject is listed more than once."))
        seen.add(key)
        if level not in CONFIDENCE_LEVELS:
            violations.append(
                FieldViolation(f"subjectConfidence.{subject}", f"Confidence must be 1, 2 or 3; got {level}.")
            )

    if profile.exam_date is not None and profile.exam_date < today:
        violations.append(FieldViolation("examDate", f"Exam date {profile.exam_date.isoformat()} is in the past."))

    return violations


class ScheduleProfileStore:
    """Validates and persists one scheduling profile per user and exam."""

    def __init__(
        self,
        repository: Optional[ScheduleProfileRepository] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository or schedule_profiles
        self._clock = clock

    def get_profile(self, user_id: str, exam_id: int) -> SchedulingProfile:
        with session_scope(commit=False) as session:
            profile = self._repository.get(session, user_id, exam_id)
        if profile is None:
            raise ProfileNotFound(f"No scheduling profile exists for exam {exam_id}; save one first.")
        return profile

    def upsert_profile(self, user_id: str, profile: SchedulingProfile) -> SchedulingProfile:
        violations = validate_profile(profile, self._clock())
        if violations:
            raise ScheduleValidationError(violations)
        with session_scope() as session:
            saved = self._repository.upsert(session, user_id, profile)
        logger.info("Saved scheduling profile for user=%s exam=%s", user_id, profile.exam_id)
        emit_event(
            "profile_upserted",
            user_id=user_id,
            exam_id=profile.exam_id,
            has_exam_date=profile.exam_date is not None,
            subjects=len(profile.subject_confidence),
        )
        return saved


profile_store = ScheduleProfileStore()

__all__ = ["ScheduleProfileStore", "profile_store", "validate_profile"]
