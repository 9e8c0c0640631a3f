"""Transactional schedule persistence with per-day budget enforcement."""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Callable, Dict, Generator, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from .db.session import session_scope
from .errors import OverBudget, SessionNotFound
from .locks import ScheduleLockRegistry, schedule_locks
from .repositories.scheduled_sessions import ScheduledSessionRepository, scheduled_sessions
from .schedule_models import ScheduledSession, SessionStatus, Weekday

logger = logging.getLogger(__name__)


def _over_budget(on: date, total: int, usable: int) -> OverBudget:
    weekday = Weekday.of(on).value
    return OverBudget(
        f"{on.isoformat()} ({weekday}) would carry {total} minutes but only {usable} are usable; "
        f"increase available hours for {weekday} or pick another day."
    )


class ScheduleTransaction:
    """Unit of work over one learner's schedule for one exam, held under the write lock."""

    def __init__(
        self,
        session: Session,
        repository: ScheduledSessionRepository,
        user_id: str,
        exam_id: int,
    ) -> None:
        self._session = session
        self._repository = repository
        self.user_id = user_id
        self.exam_id = exam_id

    def get(self, session_id: str) -> ScheduledSession:
        model = self._repository.get(self._session, session_id, for_update=True)
        if model is None or model.user_id != self.user_id or model.exam_id != self.exam_id:
            raise SessionNotFound(f"Session '{session_id}' was not found.")
        return self._repository.to_domain(model)

    def day(self, on: date) -> List[ScheduledSession]:
        models = self._repository.list_range(self._session, self.user_id, self.exam_id, on, on, for_update=True)
        return [self._repository.to_domain(model) for model in models]

    def completed_by_date(self, start: date, end: date) -> Dict[date, List[ScheduledSession]]:
        models = self._repository.list_range(self._session, self.user_id, self.exam_id, start, end, for_update=True)
        grouped: Dict[date, List[ScheduledSession]] = defaultdict(list)
        for model in models:
            if model.status == SessionStatus.COMPLETED.value:
                grouped[model.session_date].append(self._repository.to_domain(model))
        return dict(grouped)

    def write(self, updated: Iterable[ScheduledSession]) -> None:
        for entry in updated:
            model = self._repository.get(self._session, entry.id)
            if model is None:
                raise SessionNotFound(f"Session '{entry.id}' was not found.")
            self._repository.apply(model, entry)
        self._session.flush()

    def replace_week(self, week_start: date, sessions: Sequence[ScheduledSession]) -> int:
        week_end = week_start + timedelta(days=6)
        return self._repository.replace_open_sessions(
            self._session, self.user_id, self.exam_id, week_start, week_end, sessions
        )

    def ensure_within_budget(self, usable_minutes: Mapping[date, int]) -> None:
        if not usable_minutes:
            return
        start, end = min(usable_minutes), max(usable_minutes)
        models = self._repository.list_range(self._session, self.user_id, self.exam_id, start, end)
        totals = self._repository.minutes_by_date(models)
        for on, usable in sorted(usable_minutes.items()):
            total = totals.get(on, 0)
            if total > usable:
                raise _over_budget(on, total, usable)


class ScheduleStore:
    """Persists generated weeks and serves range and point reads."""

    def __init__(
        self,
        repository: Optional[ScheduledSessionRepository] = None,
        locks: Optional[ScheduleLockRegistry] = None,
    ) -> None:
        self._repository = repository or scheduled_sessions
        self._locks = locks or schedule_locks

    @contextmanager
    def transaction(self, user_id: str, exam_id: int) -> Generator[ScheduleTransaction, None, None]:
        with self._locks.hold(user_id, exam_id):
            with session_scope() as session:
                yield ScheduleTransaction(session, self._repository, user_id, exam_id)

    def save_week(
        self,
        user_id: str,
        exam_id: int,
        week_start: date,
        sessions: Sequence[ScheduledSession],
        usable_minutes: Mapping[date, int],
    ) -> List[ScheduledSession]:
        """Replace the week's open sessions with ``sessions``; completed history is kept.

        ``usable_minutes`` holds the full (uncommitted) budget of every day in
        the week. Any day that would exceed it aborts the whole write.
        """
        return self.plan_week(user_id, exam_id, week_start, lambda history: sessions, usable_minutes)

    def plan_week(
        self,
        user_id: str,
        exam_id: int,
        week_start: date,
        build: Callable[[Mapping[date, List[ScheduledSession]]], Sequence[ScheduledSession]],
        usable_minutes: Mapping[date, int],
    ) -> List[ScheduledSession]:
        """Like :meth:`save_week`, but the sessions are built under the write lock.

        ``build`` receives the week's COMPLETED sessions by date, read inside
        the same transaction, so history cannot change between planning and
        writing.
        """
        with self.transaction(user_id, exam_id) as tx:
            history = tx.completed_by_date(week_start, week_start + timedelta(days=6))
            sessions = list(build(history))
            for entry in sessions:
                if entry.owner_user_id != user_id or entry.exam_id != exam_id:
                    raise ValueError("Sessions must belong to the user and exam being saved.")
            removed = tx.replace_week(week_start, sessions)
            tx.ensure_within_budget(usable_minutes)
        logger.info(
            "Saved week %s for user=%s exam=%s (%s sessions, %s replaced)",
            week_start.isoformat(),
            user_id,
            exam_id,
            len(sessions),
            removed,
        )
        return sessions

    def get_range(
        self,
        user_id: str,
        exam_id: int,
        start: date,
        end: date,
    ) -> Dict[date, List[ScheduledSession]]:
        with session_scope(commit=False) as session:
            models = self._repository.list_range(session, user_id, exam_id, start, end)
            grouped: Dict[date, List[ScheduledSession]] = defaultdict(list)
            for model in models:
                grouped[model.session_date].append(self._repository.to_domain(model))
        return {on: sorted(items, key=lambda item: item.time_of_day) for on, items in sorted(grouped.items())}

    def get_by_id(self, user_id: str, session_id: str) -> ScheduledSession:
        with session_scope(commit=False) as session:
            model = self._repository.get(session, session_id)
            if model is None or model.user_id != user_id:
                raise SessionNotFound(f"Session '{session_id}' was not found.")
            return self._repository.to_domain(model)

    def mutate(
        self,
        user_id: str,
        session_id: str,
        change: Callable[[ScheduledSession, ScheduleTransaction], ScheduledSession],
    ) -> ScheduledSession:
        """Run ``change`` against one session under its schedule's write lock.

        ``change`` receives the freshly locked session and the open transaction
        and returns the updated session; anything it raises rolls back the write.
        """
        exam_id = self.get_by_id(user_id, session_id).exam_id
        with self.transaction(user_id, exam_id) as tx:
            return change(tx.get(session_id), tx)

    def committed_minutes(self, user_id: str, exam_id: int, start: date, end: date) -> Dict[date, int]:
        with session_scope(commit=False) as session:
            models = self._repository.list_range(session, user_id, exam_id, start, end)
            return self._repository.minutes_by_date(
                model for model in models if model.status == SessionStatus.COMPLETED.value
            )

    def record_audit(self, user_id: str, exam_id: Optional[int], event_type: str, payload: Dict[str, object]) -> None:
        with session_scope() as session:
            self._repository.record_audit(session, user_id, exam_id, event_type, payload)


schedule_store = ScheduleStore()

__all__ = ["ScheduleStore", "ScheduleTransaction", "schedule_store"]
