"""Month-oriented read models built on top of the schedule store."""

from __future__ import annotations

import calendar
from collections import Counter, defaultdict
from datetime import date
from typing import Dict, List, Optional

from .errors import FieldViolation, ScheduleValidationError
from .schedule_models import PRIORITY_ORDER, MonthSummary, ScheduledSession, SessionStatus
from .schedule_store import ScheduleStore, schedule_store


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ScheduleValidationError([FieldViolation("month", "Month must be between 1 and 12.")])
    if not date.min.year <= year <= date.max.year:
        raise ScheduleValidationError([FieldViolation("year", "Year is out of range.")])
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class ScheduleQueryService:
    def __init__(self, store: Optional[ScheduleStore] = None) -> None:
        self._store = store or schedule_store

    def get_month(self, user_id: str, exam_id: int, year: int, month: int) -> Dict[int, List[ScheduledSession]]:
        """Every day of the month mapped to its sessions in time-of-day order."""
        start, end = month_bounds(year, month)
        by_date = self._store.get_range(user_id, exam_id, start, end)
        return {day: by_date.get(date(year, month, day), []) for day in range(1, end.day + 1)}

    def get_month_summary(self, user_id: str, exam_id: int, year: int, month: int) -> MonthSummary:
        start, end = month_bounds(year, month)
        sessions = [entry for entries in self._store.get_range(user_id, exam_id, start, end).values() for entry in entries]
        statuses = Counter(entry.status for entry in sessions)
        subject_minutes: Dict[str, int] = defaultdict(int)
        for entry in sessions:
            subject_minutes[entry.subject] += entry.duration_minutes
        priorities = Counter(entry.priority for entry in sessions)

        total = len(sessions)
        completed = statuses[SessionStatus.COMPLETED]
        return MonthSummary(
            year=year,
            month=month,
            total_sessions=total,
            completed_sessions=completed,
            skipped_sessions=statuses[SessionStatus.SKIPPED],
            completion_rate=round(completed * 100.0 / total, 1) if total else 0.0,
            scheduled_minutes=sum(entry.duration_minutes for entry in sessions),
            subject_minutes=dict(sorted(subject_minutes.items())),
            priority_counts={priority: priorities[priority] for priority in PRIORITY_ORDER},
        )


query_service = ScheduleQueryService()

__all__ = ["ScheduleQueryService", "month_bounds", "query_service"]
