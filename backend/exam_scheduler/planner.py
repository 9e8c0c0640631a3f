"""Weekly plan generation: profile, weakness ranking, allocation and commit."""

from __future__ import annotations

import logging
from datetime import date
from time import perf_counter
from typing import Callable, List, Mapping, Optional

from .allocator import SessionAllocator, completed_intervals, get_allocator
from .errors import SchedulerError
from .profile_store import ScheduleProfileStore, profile_store
from .schedule_models import ScheduledSession, WeekPlanRequest
from .schedule_store import ScheduleStore, schedule_store
from .telemetry import emit_event
from .weakness_index import HttpWeaknessIndex, WeaknessIndex

logger = logging.getLogger(__name__)


class WeekPlanner:
    """Generates (or regenerates) one week of sessions for a learner and exam."""

    def __init__(
        self,
        *,
        profiles: Optional[ScheduleProfileStore] = None,
        store: Optional[ScheduleStore] = None,
        allocator: Optional[SessionAllocator] = None,
        weakness_index: Optional[WeaknessIndex] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._profiles = profiles or profile_store
        self._store = store or schedule_store
        self._allocator = allocator
        self._weakness_index = weakness_index
        self._clock = clock

    @property
    def allocator(self) -> SessionAllocator:
        return self._allocator or get_allocator()

    @property
    def weakness_index(self) -> WeaknessIndex:
        if self._weakness_index is None:
            self._weakness_index = HttpWeaknessIndex.from_settings()
        return self._weakness_index

    def generate_week(self, user_id: str, request: WeekPlanRequest) -> List[ScheduledSession]:
        started = perf_counter()
        try:
            sessions = self._generate(user_id, request)
        except SchedulerError as exc:
            emit_event(
                "schedule_generation",
                user_id=user_id,
                exam_id=request.exam_id,
                week_start=request.week_start_date,
                status="failure",
                error_code=exc.code,
                duration_ms=round((perf_counter() - started) * 1000, 2),
            )
            raise
        emit_event(
            "schedule_generation",
            user_id=user_id,
            exam_id=request.exam_id,
            week_start=request.week_start_date,
            status="success",
            session_count=len(sessions),
            topic_count=len(request.topic_ids),
            duration_ms=round((perf_counter() - started) * 1000, 2),
        )
        return sessions

    def _generate(self, user_id: str, request: WeekPlanRequest) -> List[ScheduledSession]:
        profile = self._profiles.get_profile(user_id, request.exam_id)
        allocator = self.allocator
        allocator.validate_request(request)
        # ranked before any lock is taken; a slow index never blocks writers
        ranking = self.weakness_index.rank_topics(user_id, request.exam_id, request.topic_ids)

        week_start = request.week_start_date
        dates = allocator.week_dates(week_start)
        today = self._clock()

        def _build(history: Mapping[date, List[ScheduledSession]]) -> List[ScheduledSession]:
            committed = {on: sum(entry.duration_minutes for entry in entries) for on, entries in history.items()}
            occupied = {on: completed_intervals(entries) for on, entries in history.items()}
            return allocator.allocate(
                user_id,
                request,
                profile,
                ranking,
                today=today,
                committed_minutes=committed,
                occupied=occupied,
            )

        return self._store.plan_week(
            user_id,
            request.exam_id,
            week_start,
            _build,
            allocator.usable_minutes(profile, dates),
        )


week_planner = WeekPlanner()

__all__ = ["WeekPlanner", "week_planner"]
