from __future__ import annotations

from conftest import audit_rows
from exam_scheduler import telemetry_pipeline
from exam_scheduler.telemetry import emit_event


def test_audited_events_are_persisted(scheduler_db) -> None:
    telemetry_pipeline.install()
    try:
        emit_event("session_rescheduled", user_id="learner-1", exam_id=7, session_id="abc", to_date="2024-06-09")
        emit_event("db_pool_status", connects=1)
        emit_event("session_status_changed", user_id="  ", exam_id=7)
    finally:
        telemetry_pipeline.uninstall()

    events = audit_rows("learner-1")
    assert [event["event_type"] for event in events] == ["session_rescheduled"]
    assert events[0]["exam_id"] == 7
    assert events[0]["payload"]["to_date"] == "2024-06-09"


def test_persistence_failures_do_not_escape(monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise RuntimeError("database offline")

    monkeypatch.setattr(telemetry_pipeline.schedule_store, "record_audit", broken)
    event = telemetry_pipeline.TelemetryEvent(name="profile_upserted", payload={"user_id": "learner-1", "exam_id": 7})
    telemetry_pipeline.persist_event(event)
