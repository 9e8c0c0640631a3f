from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import TODAY, WEEK_START, make_profile, overlapping_slots, ranked
from exam_scheduler.allocator import AllocationPolicy, SessionAllocator
from exam_scheduler.errors import ConflictingFixedDay, ProfileNotFound, WeaknessIndexUnavailable
from exam_scheduler.mutations import MutationEngine
from exam_scheduler.planner import WeekPlanner
from exam_scheduler.profile_store import ScheduleProfileStore
from exam_scheduler.schedule_models import SessionStatus, WeekPlanRequest, Weekday
from exam_scheduler.schedule_store import ScheduleStore
from exam_scheduler.weakness_index import StaticWeaknessIndex

WEEK_END = WEEK_START + timedelta(days=6)


class _FailingIndex:
    def __init__(self) -> None:
        self.calls = 0

    def rank_topics(self, user_id, exam_id, topic_ids):
        self.calls += 1
        raise WeaknessIndexUnavailable("index down")


def _planner(index=None) -> WeekPlanner:
    return WeekPlanner(
        profiles=ScheduleProfileStore(clock=lambda: TODAY),
        store=ScheduleStore(),
        allocator=SessionAllocator(AllocationPolicy()),
        weakness_index=index or StaticWeaknessIndex.from_entries([ranked(1, 0.4), ranked(2, 0.9), ranked(3, 0.1)]),
        clock=lambda: TODAY,
    )


def _request(**overrides) -> WeekPlanRequest:
    values = {"exam_id": 7, "week_start_date": WEEK_START, "topic_ids": [1, 2], "mock_day": Weekday.SATURDAY}
    values.update(overrides)
    return WeekPlanRequest(**values)


@pytest.fixture()
def with_profile(scheduler_db):
    ScheduleProfileStore(clock=lambda: TODAY).upsert_profile("learner-1", make_profile(exam_date=date(2024, 6, 20)))


def test_generate_week_persists_sessions(with_profile, collected_events) -> None:
    sessions = _planner().generate_week("learner-1", _request())

    stored = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END)
    assert sum(len(entries) for entries in stored.values()) == len(sessions) == 13
    event = [event for event in collected_events if event.name == "schedule_generation"][-1]
    assert event.payload["status"] == "success"
    assert event.payload["session_count"] == 13
    assert "duration_ms" in event.payload


def test_regeneration_replaces_open_sessions_and_keeps_history(with_profile) -> None:
    planner = _planner()
    first = planner.generate_week("learner-1", _request())
    monday_first = sorted((entry for entry in first if entry.session_date == WEEK_START), key=lambda e: e.time_of_day)[0]
    MutationEngine(
        store=ScheduleStore(),
        profiles=ScheduleProfileStore(clock=lambda: TODAY),
        allocator=SessionAllocator(AllocationPolicy()),
    ).mark_status("learner-1", monday_first.id, SessionStatus.COMPLETED)

    second = planner.generate_week("learner-1", _request(topic_ids=[3]))

    stored = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END)
    ids = {entry.id for entries in stored.values() for entry in entries}
    assert monday_first.id in ids
    assert ids == {monday_first.id} | {entry.id for entry in second}
    assert sum(entry.duration_minutes for entry in stored[WEEK_START]) <= 120
    assert all(entry.topic_id in (None, 3) for entry in second)


def test_conflicting_days_write_nothing(with_profile, collected_events) -> None:
    with pytest.raises(ConflictingFixedDay):
        _planner().generate_week("learner-1", _request(mock_day=Weekday.MONDAY, weakness_test_day=Weekday.MONDAY))

    assert ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END) == {}
    event = [event for event in collected_events if event.name == "schedule_generation"][-1]
    assert event.payload["status"] == "failure"
    assert event.payload["error_code"] == "ConflictingFixedDay"


def test_index_outage_fails_generation_without_writes(with_profile) -> None:
    planner = _planner()
    planner.generate_week("learner-1", _request())
    before = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END)

    index = _FailingIndex()
    with pytest.raises(WeaknessIndexUnavailable):
        _planner(index).generate_week("learner-1", _request())
    assert index.calls == 1
    assert ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END) == before


def test_missing_profile(scheduler_db) -> None:
    with pytest.raises(ProfileNotFound):
        _planner().generate_week("learner-1", _request())


def test_regeneration_lays_out_around_completed_history(with_profile) -> None:
    planner = _planner()
    first = planner.generate_week("learner-1", _request())
    opener = sorted((entry for entry in first if entry.session_date == WEEK_START), key=lambda e: e.time_of_day)[0]
    assert opener.time_of_day == "06:00"
    MutationEngine(
        store=ScheduleStore(),
        profiles=ScheduleProfileStore(clock=lambda: TODAY),
        allocator=SessionAllocator(AllocationPolicy()),
    ).mark_status("learner-1", opener.id, SessionStatus.COMPLETED)

    planner.generate_week("learner-1", _request())

    stored = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_END)
    monday = stored[WEEK_START]
    assert [(entry.time_of_day, entry.status) for entry in monday] == [
        ("06:00", SessionStatus.COMPLETED),
        ("07:00", SessionStatus.PENDING),
    ]
    for entries in stored.values():
        assert overlapping_slots(entries) == []
