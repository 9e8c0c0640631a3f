"""Weekly session allocation: fixed test days, round-robin topic packing and slot layout."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from .availability import Interval, day_window, layout_times, parse_clock
from .config import Settings, get_settings
from .errors import ConflictingFixedDay, InsufficientTimeForFixedSlot, InvalidWeekStart, NoTopicsSelected
from .schedule_models import (
    DIFFICULTY_ORDER,
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
    WeekPlanRequest,
    Weekday,
)
from .weakness_index import normalize_ranking

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
MIN_QUESTION_COUNT = 5
MOCK_SUBJECT = "General"
MOCK_TITLE = "Full Mock Test"
WEAKNESS_TEST_TITLE = "Weakness Test"

TOPIC_UNIT_CYCLE: Tuple[SessionMethod, ...] = (
    SessionMethod.STUDY,
    SessionMethod.PRACTICE,
    SessionMethod.TEST,
)

_LEVEL_DIFFICULTY: Dict[CurrentLevel, int] = {
    CurrentLevel.NEW: 0,
    CurrentLevel.MID: 1,
    CurrentLevel.STRONG: 2,
}

_CHECK_KIND_FOR_CONFIDENCE: Dict[int, AssessmentKind] = {
    1: AssessmentKind.CONCEPT_QUIZ,
    2: AssessmentKind.DRILL_ACCURACY,
    3: AssessmentKind.DRILL_SPEED,
}


@dataclass(frozen=True)
class AllocationPolicy:
    """Tunable constants for the allocator."""

    day_start_minutes: int = 6 * 60
    study_minutes: int = 60
    practice_minutes: int = 45
    check_test_minutes: int = 30
    max_sessions_per_topic: int = 6
    near_term_horizon_days: int = 30
    min_fixed_slot_minutes: int = 60
    weakness_test_max_minutes: int = 180
    minutes_per_question: float = 2.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AllocationPolicy":
        settings = settings or get_settings()
        day_start = parse_clock(settings.day_start_time)
        return cls(
            day_start_minutes=day_start if day_start is not None else 6 * 60,
            study_minutes=settings.study_session_minutes,
            practice_minutes=settings.practice_session_minutes,
            check_test_minutes=settings.check_test_minutes,
            max_sessions_per_topic=settings.max_sessions_per_topic,
            near_term_horizon_days=settings.near_term_horizon_days,
            min_fixed_slot_minutes=settings.min_fixed_slot_minutes,
            weakness_test_max_minutes=settings.weakness_test_max_minutes,
            minutes_per_question=settings.minutes_per_question,
        )

    def minutes_for(self, method: SessionMethod) -> int:
        if method is SessionMethod.STUDY:
            return self.study_minutes
        if method is SessionMethod.PRACTICE:
            return self.practice_minutes
        return self.check_test_minutes


@dataclass
class _WorkUnit:
    topic: RankedTopic
    rank: int
    method: SessionMethod
    minutes: int


def assign_priority(rank: int, total: int, days_to_exam: Optional[int], horizon_days: int) -> Priority:
    """Map a weakness rank (0 = weakest) and exam proximity onto a session priority."""
    if total <= 0 or not 0 <= rank < total:
        raise ValueError(f"rank {rank} is outside a ranking of {total} topics")
    if rank < math.ceil(total / 3):
        # weakest third never drops below MEDIUM, even without a near exam
        near_term = days_to_exam is not None and 0 <= days_to_exam <= horizon_days
        return Priority.HIGH if near_term else Priority.MEDIUM
    if rank < math.ceil(2 * total / 3):
        return Priority.MEDIUM
    return Priority.LOW


def _style_rank(method: SessionMethod, style: StudyStyle) -> int:
    is_study = method is SessionMethod.STUDY
    if style is StudyStyle.TESTS_FIRST:
        return 1 if is_study else 0
    return 0 if is_study else 1


def order_day(sessions: Sequence[ScheduledSession], style: StudyStyle) -> List[ScheduledSession]:
    """Order one day's sessions: priority first, then topic grouping and study style."""
    first_seen: Dict[object, int] = {}
    for position, session in enumerate(sessions):
        first_seen.setdefault(session.topic_id if session.topic_id is not None else session.topic, position)

    def _key(indexed: Tuple[int, ScheduledSession]) -> Tuple[int, int, int, int]:
        position, session = indexed
        topic_key = session.topic_id if session.topic_id is not None else session.topic
        return (
            session.priority.rank,
            first_seen[topic_key],
            _style_rank(session.method, style),
            position,
        )

    return [session for _, session in sorted(enumerate(sessions), key=_key)]


def completed_intervals(sessions: Sequence[ScheduledSession]) -> List[Interval]:
    """Clock intervals held by COMPLETED sessions; they keep the slot they were done in."""
    intervals: List[Interval] = []
    for session in sessions:
        if session.status is not SessionStatus.COMPLETED:
            continue
        start = parse_clock(session.time_of_day)
        if start is not None:
            intervals.append((start, start + session.duration_minutes))
    return intervals


def lay_out_day(
    sessions: Sequence[ScheduledSession],
    profile: SchedulingProfile,
    on: date,
    day_start_minutes: int,
    busy: Sequence[Interval] = (),
) -> List[ScheduledSession]:
    """Return copies of ``sessions`` with ``time_of_day`` assigned in priority order.

    ``busy`` intervals stay untouched and nothing is placed over them.
    """
    ordered = order_day(sessions, profile.study_style)
    window = day_window(profile, Weekday.of(on), day_start_minutes)
    placed = layout_times(ordered, lambda session: session.duration_minutes, window, busy)
    return [session.model_copy(update={"time_of_day": slot}) for session, slot in placed]


class SessionAllocator:
    """Builds the sessions for one week from a plan request and the learner's profile."""

    def __init__(self, policy: Optional[AllocationPolicy] = None) -> None:
        self._policy = policy or AllocationPolicy()

    @property
    def policy(self) -> AllocationPolicy:
        return self._policy

    def week_dates(self, week_start: date) -> List[date]:
        return [week_start + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]

    def usable_minutes(
        self,
        profile: SchedulingProfile,
        dates: Sequence[date],
        committed_minutes: Optional[Mapping[date, int]] = None,
    ) -> Dict[date, int]:
        committed = committed_minutes or {}
        budgets: Dict[date, int] = {}
        for value in dates:
            window = day_window(profile, Weekday.of(value), self._policy.day_start_minutes)
            budgets[value] = max(0, window.usable_minutes - committed.get(value, 0))
        return budgets

    def allocate(
        self,
        user_id: str,
        request: WeekPlanRequest,
        profile: SchedulingProfile,
        ranking: Sequence[RankedTopic],
        *,
        today: date,
        committed_minutes: Optional[Mapping[date, int]] = None,
        occupied: Optional[Mapping[date, Sequence[Interval]]] = None,
    ) -> List[ScheduledSession]:
        self.validate_request(request)
        ordered = normalize_ranking(ranking, request.topic_ids)
        dates = self.week_dates(request.week_start_date)
        budgets = self.usable_minutes(profile, dates, committed_minutes)
        days_to_exam = (profile.exam_date - today).days if profile.exam_date else None

        fixed_days: Dict[date, ScheduledSession] = {}
        mock_date = dates[request.mock_day.position]
        fixed_days[mock_date] = self._mock_session(user_id, request, profile, mock_date, budgets[mock_date])
        if request.weakness_test_day is not None:
            weakness_date = dates[request.weakness_test_day.position]
            fixed_days[weakness_date] = self._weakness_session(
                user_id, request, profile, ordered, weakness_date, budgets[weakness_date]
            )

        open_days = [value for value in dates if value not in fixed_days]
        packed = self._pack(self._build_stream(ordered, profile), open_days, budgets)

        sessions: List[ScheduledSession] = []
        for value in dates:
            if value in fixed_days:
                day_sessions = [fixed_days[value]]
            else:
                day_sessions = [
                    self._topic_session(user_id, request, profile, unit, value, len(ordered), days_to_exam)
                    for unit in packed.get(value, [])
                ]
            if day_sessions:
                busy = (occupied or {}).get(value, ())
                sessions.extend(lay_out_day(day_sessions, profile, value, self._policy.day_start_minutes, busy))

        logger.debug(
            "Allocated %s sessions for user=%s exam=%s week=%s",
            len(sessions),
            user_id,
            request.exam_id,
            request.week_start_date.isoformat(),
        )
        return sessions

    def validate_request(self, request: WeekPlanRequest) -> None:
        if request.week_start_date.weekday() != 0:
            raise InvalidWeekStart(
                f"Week start {request.week_start_date.isoformat()} is a "
                f"{Weekday.of(request.week_start_date).value}; weeks must start on a MONDAY."
            )
        if not request.topic_ids:
            raise NoTopicsSelected("Select at least one topic to build a weekly plan.")
        if request.weakness_test_day is not None and request.weakness_test_day == request.mock_day:
            raise ConflictingFixedDay(
                f"The mock test and the weakness test cannot both be scheduled on {request.mock_day.value}."
            )

    def _build_stream(self, ordered: Sequence[RankedTopic], profile: SchedulingProfile) -> List[_WorkUnit]:
        stream: List[_WorkUnit] = []
        for round_index in range(self._policy.max_sessions_per_topic):
            method = TOPIC_UNIT_CYCLE[round_index % len(TOPIC_UNIT_CYCLE)]
            for rank, topic in enumerate(ordered):
                stream.append(
                    _WorkUnit(topic=topic, rank=rank, method=method, minutes=self._policy.minutes_for(method))
                )
        return stream

    def _pack(
        self,
        stream: Sequence[_WorkUnit],
        open_days: Sequence[date],
        budgets: Mapping[date, int],
    ) -> Dict[date, List[_WorkUnit]]:
        queue: Deque[_WorkUnit] = deque(stream)
        packed: Dict[date, List[_WorkUnit]] = {}
        for value in open_days:
            if not queue:
                break
            budget = budgets[value]
            used = 0
            while queue and used + queue[0].minutes <= budget:
                unit = queue.popleft()
                packed.setdefault(value, []).append(unit)
                used += unit.minutes
        if queue:
            logger.debug("Week ran out of usable time with %s units unplaced", len(queue))
        return packed

    def _difficulty(self, level: CurrentLevel, bump: int = 0) -> DifficultyLevel:
        index = min(_LEVEL_DIFFICULTY[level] + bump, len(DIFFICULTY_ORDER) - 1)
        return DIFFICULTY_ORDER[index]

    def _question_count(self, minutes: int) -> int:
        return max(MIN_QUESTION_COUNT, int(minutes // self._policy.minutes_per_question))

    def _require_fixed_minutes(self, label: str, value: date, available: int) -> None:
        if available < self._policy.min_fixed_slot_minutes:
            weekday = Weekday.of(value).value
            raise InsufficientTimeForFixedSlot(
                f"The {label} on {weekday} needs at least {self._policy.min_fixed_slot_minutes} minutes "
                f"but only {available} are usable; increase available hours for {weekday} "
                "or move the test to another day."
            )

    def _mock_session(
        self,
        user_id: str,
        request: WeekPlanRequest,
        profile: SchedulingProfile,
        value: date,
        available: int,
    ) -> ScheduledSession:
        self._require_fixed_minutes("mock test", value, available)
        return ScheduledSession(
            id=str(uuid4()),
            owner_user_id=user_id,
            exam_id=request.exam_id,
            session_date=value,
            week_start_date=request.week_start_date,
            subject=MOCK_SUBJECT,
            topic=MOCK_TITLE,
            method=SessionMethod.TEST,
            test_kind=AssessmentKind.MOCK,
            priority=Priority.HIGH,
            duration_minutes=available,
            difficulty_level=self._difficulty(profile.current_level, bump=1),
            question_count=self._question_count(available),
            time_limit_minutes=available,
            goal_note=request.custom_goals,
        )

    def _weakness_session(
        self,
        user_id: str,
        request: WeekPlanRequest,
        profile: SchedulingProfile,
        ordered: Sequence[RankedTopic],
        value: date,
        available: int,
    ) -> ScheduledSession:
        self._require_fixed_minutes("weakness test", value, available)
        minutes = min(available, self._policy.weakness_test_max_minutes)
        focus = ordered[: max(1, math.ceil(len(ordered) / 3))]
        return ScheduledSession(
            id=str(uuid4()),
            owner_user_id=user_id,
            exam_id=request.exam_id,
            session_date=value,
            week_start_date=request.week_start_date,
            subject=MOCK_SUBJECT,
            topic=f"{WEAKNESS_TEST_TITLE}: {', '.join(topic.label for topic in focus)}",
            method=SessionMethod.TEST,
            test_kind=AssessmentKind.WEAKNESS_TEST,
            priority=Priority.HIGH,
            duration_minutes=minutes,
            difficulty_level=self._difficulty(profile.current_level),
            question_count=self._question_count(minutes),
            time_limit_minutes=minutes,
            goal_note=request.custom_goals,
        )

    def _topic_session(
        self,
        user_id: str,
        request: WeekPlanRequest,
        profile: SchedulingProfile,
        unit: _WorkUnit,
        value: date,
        total: int,
        days_to_exam: Optional[int],
    ) -> ScheduledSession:
        priority = assign_priority(unit.rank, total, days_to_exam, self._policy.near_term_horizon_days)
        test_fields: Dict[str, object] = {}
        if unit.method is SessionMethod.TEST:
            confidence = profile.confidence_for(unit.topic.subject)
            test_fields = {
                "test_kind": _CHECK_KIND_FOR_CONFIDENCE.get(confidence, AssessmentKind.CONCEPT_QUIZ),
                "difficulty_level": self._difficulty(profile.current_level),
                "question_count": self._question_count(unit.minutes),
                "time_limit_minutes": unit.minutes,
            }
        return ScheduledSession(
            id=str(uuid4()),
            owner_user_id=user_id,
            exam_id=request.exam_id,
            session_date=value,
            week_start_date=request.week_start_date,
            subject=unit.topic.subject,
            topic=unit.topic.label,
            topic_id=unit.topic.topic_id,
            method=unit.method,
            priority=priority,
            duration_minutes=unit.minutes,
            goal_note=request.custom_goals,
            **test_fields,
        )


_allocator: Optional[SessionAllocator] = None


def get_allocator() -> SessionAllocator:
    global _allocator
    if _allocator is None:
        _allocator = SessionAllocator(AllocationPolicy.from_settings())
    return _allocator


__all__ = [
    "AllocationPolicy",
    "SessionAllocator",
    "TOPIC_UNIT_CYCLE",
    "assign_priority",
    "completed_intervals",
    "get_allocator",
    "lay_out_day",
    "order_day",
]
