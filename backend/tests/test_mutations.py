from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import TODAY, WEEK_START, make_profile, make_session, overlapping_slots
from exam_scheduler.allocator import AllocationPolicy, SessionAllocator
from exam_scheduler.errors import InvalidTransition, OverBudget, SessionNotFound
from exam_scheduler.mutations import MutationEngine
from exam_scheduler.profile_store import ScheduleProfileStore
from exam_scheduler.schedule_models import Priority, SessionStatus
from exam_scheduler.schedule_store import ScheduleStore

TUESDAY = WEEK_START + timedelta(days=1)
FIXED_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine(scheduler_db):
    profiles = ScheduleProfileStore(clock=lambda: TODAY)
    profiles.upsert_profile("learner-1", make_profile(daily_available_hours=[2] * 7))
    return MutationEngine(
        store=ScheduleStore(),
        profiles=profiles,
        allocator=SessionAllocator(AllocationPolicy()),
        now=lambda: FIXED_NOW,
    )


def _seed(*sessions):
    ScheduleStore().save_week(
        "learner-1",
        7,
        WEEK_START,
        list(sessions),
        {WEEK_START + timedelta(days=offset): 120 for offset in range(7)},
    )


def test_completing_stamps_completed_at(engine, collected_events) -> None:
    session = make_session(WEEK_START, 60)
    _seed(session)

    updated = engine.mark_status("learner-1", session.id, SessionStatus.COMPLETED)

    assert updated.status is SessionStatus.COMPLETED
    assert updated.completed
    assert updated.completed_at == FIXED_NOW
    stored = ScheduleStore().get_by_id("learner-1", session.id)
    assert stored.status is SessionStatus.COMPLETED
    event = [event for event in collected_events if event.name == "session_status_changed"][0]
    assert event.payload["from_status"] == "PENDING"
    assert event.payload["to_status"] == "COMPLETED"


def test_skip_and_restore(engine) -> None:
    session = make_session(WEEK_START, 60)
    _seed(session)

    assert engine.mark_status("learner-1", session.id, SessionStatus.SKIPPED).status is SessionStatus.SKIPPED
    restored = engine.mark_status("learner-1", session.id, SessionStatus.PENDING)
    assert restored.status is SessionStatus.PENDING
    assert restored.completed_at is None


@pytest.mark.parametrize(
    ("start", "target"),
    [
        (SessionStatus.COMPLETED, SessionStatus.PENDING),
        (SessionStatus.COMPLETED, SessionStatus.SKIPPED),
        (SessionStatus.COMPLETED, SessionStatus.COMPLETED),
        (SessionStatus.PENDING, SessionStatus.PENDING),
        (SessionStatus.SKIPPED, SessionStatus.COMPLETED),
        (SessionStatus.SKIPPED, SessionStatus.SKIPPED),
    ],
)
def test_disallowed_transitions(engine, start, target) -> None:
    session = make_session(WEEK_START, 60, status=start)
    _seed(session)

    with pytest.raises(InvalidTransition):
        engine.mark_status("learner-1", session.id, target)
    assert ScheduleStore().get_by_id("learner-1", session.id).status is start


def test_reschedule_moves_and_relays_both_days(engine, collected_events) -> None:
    first = make_session(WEEK_START, 60, time_of_day="06:00", priority=Priority.HIGH, topic_id=1)
    second = make_session(WEEK_START, 45, time_of_day="07:00", topic_id=2)
    resident = make_session(TUESDAY, 30, time_of_day="06:00", priority=Priority.LOW, topic_id=3)
    _seed(first, second, resident)

    moved = engine.reschedule("learner-1", first.id, TUESDAY)

    assert moved.session_date == TUESDAY
    assert moved.time_of_day == "06:00"
    store = ScheduleStore()
    assert store.get_by_id("learner-1", resident.id).time_of_day == "07:00"
    assert store.get_by_id("learner-1", second.id).time_of_day == "06:00"
    assert [event.name for event in collected_events].count("session_rescheduled") == 1


def test_reschedule_onto_a_full_day_is_rejected(engine) -> None:
    mover = make_session(WEEK_START, 60)
    _seed(mover, make_session(TUESDAY, 60), make_session(TUESDAY, 50, time_of_day="07:00"))

    with pytest.raises(OverBudget):
        engine.reschedule("learner-1", mover.id, TUESDAY)

    unchanged = ScheduleStore().get_by_id("learner-1", mover.id)
    assert unchanged.session_date == WEEK_START
    assert unchanged.time_of_day == "06:00"


def test_completed_sessions_cannot_move(engine) -> None:
    done = make_session(WEEK_START, 60, status=SessionStatus.COMPLETED)
    _seed(done)
    with pytest.raises(InvalidTransition):
        engine.reschedule("learner-1", done.id, TUESDAY)


def test_reschedule_to_same_day_only_relays(engine) -> None:
    low = make_session(WEEK_START, 60, time_of_day="06:00", priority=Priority.LOW, topic_id=1)
    high = make_session(WEEK_START, 45, time_of_day="07:00", priority=Priority.HIGH, topic_id=2)
    _seed(low, high)

    moved = engine.reschedule("learner-1", low.id, WEEK_START)

    assert moved.session_date == WEEK_START
    assert moved.time_of_day == "06:45"
    assert ScheduleStore().get_by_id("learner-1", high.id).time_of_day == "06:00"


def test_foreign_sessions_cannot_be_mutated(engine) -> None:
    session = make_session(WEEK_START, 60)
    _seed(session)
    with pytest.raises(SessionNotFound):
        engine.mark_status("learner-2", session.id, SessionStatus.COMPLETED)
    with pytest.raises(SessionNotFound):
        engine.reschedule("learner-2", session.id, TUESDAY)


def test_reschedule_flows_around_completed_sessions(engine) -> None:
    done = make_session(WEEK_START, 60, status=SessionStatus.COMPLETED, topic_id=1)
    mover = make_session(TUESDAY, 45, topic_id=2)
    _seed(done, mover)

    moved = engine.reschedule("learner-1", mover.id, WEEK_START)

    assert moved.time_of_day == "07:00"
    monday = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_START)[WEEK_START]
    assert ScheduleStore().get_by_id("learner-1", done.id).time_of_day == "06:00"
    assert overlapping_slots(monday) == []


def test_relayout_jumps_over_a_completed_session_mid_morning(engine) -> None:
    early = make_session(WEEK_START, 30, topic_id=1)
    done = make_session(WEEK_START, 30, time_of_day="07:00", status=SessionStatus.COMPLETED, topic_id=3)
    mover = make_session(TUESDAY, 45, topic_id=2)
    _seed(early, done, mover)

    moved = engine.reschedule("learner-1", mover.id, WEEK_START)

    monday = ScheduleStore().get_range("learner-1", 7, WEEK_START, WEEK_START)[WEEK_START]
    assert [(entry.id, entry.time_of_day) for entry in monday] == [
        (early.id, "06:00"),
        (done.id, "07:00"),
        (moved.id, "07:30"),
    ]
    assert overlapping_slots(monday) == []
