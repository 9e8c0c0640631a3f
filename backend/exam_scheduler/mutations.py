"""Single-session mutations: status transitions and rescheduling."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, List, Optional

from .allocator import SessionAllocator, completed_intervals, get_allocator, lay_out_day
from .availability import usable_minutes
from .errors import InvalidTransition, OverBudget
from .profile_store import ScheduleProfileStore, profile_store
from .schedule_models import ScheduledSession, SessionStatus, Weekday
from .schedule_store import ScheduleStore, ScheduleTransaction, schedule_store
from .telemetry import emit_event

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.COMPLETED, SessionStatus.SKIPPED}),
    SessionStatus.SKIPPED: frozenset({SessionStatus.PENDING}),
    SessionStatus.COMPLETED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _monday_of(value: date) -> date:
    return value - timedelta(days=value.weekday())


class MutationEngine:
    """Applies learner edits to one session without touching the rest of the plan."""

    def __init__(
        self,
        *,
        store: Optional[ScheduleStore] = None,
        profiles: Optional[ScheduleProfileStore] = None,
        allocator: Optional[SessionAllocator] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store or schedule_store
        self._profiles = profiles or profile_store
        self._allocator = allocator
        self._now = now

    @property
    def allocator(self) -> SessionAllocator:
        return self._allocator or get_allocator()

    def mark_status(self, user_id: str, session_id: str, status: SessionStatus) -> ScheduledSession:
        previous: List[SessionStatus] = []

        def _change(current: ScheduledSession, tx: ScheduleTransaction) -> ScheduledSession:
            if status not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidTransition(
                    f"Session '{session_id}' cannot move from {current.status.value} to {status.value}."
                )
            previous.append(current.status)
            stamp = self._now()
            updated = current.model_copy(
                update={
                    "status": status,
                    "completed_at": stamp if status is SessionStatus.COMPLETED else None,
                    "updated_at": stamp,
                }
            )
            tx.write([updated])
            return updated

        updated = self._store.mutate(user_id, session_id, _change)
        emit_event(
            "session_status_changed",
            user_id=user_id,
            exam_id=updated.exam_id,
            session_id=session_id,
            from_status=previous[0].value,
            to_status=status.value,
        )
        return updated

    def reschedule(self, user_id: str, session_id: str, new_date: date) -> ScheduledSession:
        snapshot = self._store.get_by_id(user_id, session_id)
        if snapshot.status is SessionStatus.COMPLETED:
            raise InvalidTransition(f"Session '{session_id}' is completed and can no longer be moved.")
        profile = self._profiles.get_profile(user_id, snapshot.exam_id)
        day_start = self.allocator.policy.day_start_minutes
        available = usable_minutes(profile, new_date, day_start)

        def _change(current: ScheduledSession, tx: ScheduleTransaction) -> ScheduledSession:
            if current.status is SessionStatus.COMPLETED:
                raise InvalidTransition(f"Session '{session_id}' is completed and can no longer be moved.")
            others = [entry for entry in tx.day(new_date) if entry.id != current.id]
            used = sum(entry.duration_minutes for entry in others)
            if used + current.duration_minutes > available:
                weekday = Weekday.of(new_date).value
                raise OverBudget(
                    f"{new_date.isoformat()} ({weekday}) has {max(available - used, 0)} free minutes but the "
                    f"session needs {current.duration_minutes}; increase available hours for {weekday} "
                    "or pick another day."
                )

            moved = current.model_copy(
                update={
                    "session_date": new_date,
                    "week_start_date": _monday_of(new_date),
                    "updated_at": self._now(),
                }
            )
            # completed sessions keep the slot they were done in; the rest flow around them
            updates = self._relayout(others + [moved], profile, new_date, day_start)
            if new_date != current.session_date:
                remaining = [entry for entry in tx.day(current.session_date) if entry.id != current.id]
                updates.extend(self._relayout(remaining, profile, current.session_date, day_start))
            tx.write(updates)
            tx.ensure_within_budget({new_date: available})
            return next(entry for entry in updates if entry.id == current.id)

        updated = self._store.mutate(user_id, session_id, _change)
        logger.info("Rescheduled session %s from %s to %s", session_id, snapshot.session_date, new_date)
        emit_event(
            "session_rescheduled",
            user_id=user_id,
            exam_id=updated.exam_id,
            session_id=session_id,
            from_date=snapshot.session_date,
            to_date=new_date,
            time_of_day=updated.time_of_day,
        )
        return updated

    @staticmethod
    def _relayout(sessions, profile, on: date, day_start: int) -> List[ScheduledSession]:
        open_sessions = [entry for entry in sessions if entry.status is not SessionStatus.COMPLETED]
        if not open_sessions:
            return []
        return lay_out_day(open_sessions, profile, on, day_start, busy=completed_intervals(sessions))


mutation_engine = MutationEngine()

__all__ = ["ALLOWED_TRANSITIONS", "MutationEngine", "mutation_engine"]
