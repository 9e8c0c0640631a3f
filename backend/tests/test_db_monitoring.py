from __future__ import annotations

import pytest
from sqlalchemy import create_engine, text

from exam_scheduler.db import monitoring


def test_instrument_engine_emits_pool_status(monkeypatch) -> None:
    emitted: list[tuple[str, dict[str, object]]] = []

    def record(event_name: str, **payload: object) -> None:
        emitted.append((event_name, payload))

    monkeypatch.setattr(monitoring, "_TELEMETRY_INTERVAL", 0)
    monkeypatch.setattr(monitoring, "emit_event", record)

    engine = create_engine("sqlite:///:memory:", future=True)
    try:
        monitoring.instrument_engine(engine)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        assert emitted
        event_name, payload = emitted[0]
        assert event_name == "db_pool_status"
        assert payload["connects"] >= 1
        snapshot = monitoring.get_pool_snapshot(engine)
        assert snapshot["checkouts"] >= 1
        assert "status" in snapshot
    finally:
        engine.dispose()
        monitoring.forget_engine(engine)


def test_check_database_reports_latency(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'probe.sqlite'}", future=True)
    try:
        report = monitoring.check_database(engine)
        assert report["latency_ms"] >= 0
        assert "pool" in report
    finally:
        engine.dispose()


def test_check_database_propagates_errors() -> None:
    class _BrokenEngine:
        def connect(self):
            raise RuntimeError("no route to database")

    with pytest.raises(RuntimeError):
        monitoring.check_database(_BrokenEngine())  # type: ignore[arg-type]
