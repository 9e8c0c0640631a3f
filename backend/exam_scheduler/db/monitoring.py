"""Connection-pool counters and the database readiness probe behind ``/healthz/database``."""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from typing import Dict

from sqlalchemy import event, text
from sqlalchemy.engine import Engine

from ..telemetry import emit_event


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    last_emit: float = 0.0

    def as_payload(self) -> Dict[str, int]:
        payload = asdict(self)
        payload.pop("last_emit")
        return payload


_COUNTERS: Dict[int, PoolCounters] = {}
_TELEMETRY_INTERVAL = float(os.getenv("SCHEDULER_DB_TELEMETRY_INTERVAL", "30"))


def instrument_engine(engine: Engine) -> None:
    """Count pool connects/checkouts/checkins and emit throttled ``db_pool_status`` events."""
    key = id(engine)
    if key in _COUNTERS:
        return
    counters = PoolCounters()
    _COUNTERS[key] = counters

    def _bump(field: str, source: str) -> None:
        setattr(counters, field, getattr(counters, field) + 1)
        now = time.time()
        if _TELEMETRY_INTERVAL > 0 and (now - counters.last_emit) < _TELEMETRY_INTERVAL:
            return
        counters.last_emit = now
        emit_event("db_pool_status", status=_pool_status(engine), source=source, **counters.as_payload())

    event.listen(engine, "connect", lambda *_: _bump("connects", "connect"))
    event.listen(engine, "checkout", lambda *_: _bump("checkouts", "checkout"))
    event.listen(engine, "checkin", lambda *_: _bump("checkins", "checkin"))


def forget_engine(engine: Engine) -> None:
    _COUNTERS.pop(id(engine), None)


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(id(engine)) or PoolCounters()
    return {"status": _pool_status(engine), **counters.as_payload()}


def check_database(engine: Engine) -> Dict[str, object]:
    """Run ``SELECT 1`` and return the pool snapshot; errors propagate to the caller."""
    started = time.perf_counter()
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    latency_ms = round((time.perf_counter() - started) * 1000.0, 2)
    return {"latency_ms": latency_ms, "pool": get_pool_snapshot(engine)}


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # noqa: BLE001
        return f"unavailable: {exc}"


__all__ = [
    "PoolCounters",
    "check_database",
    "forget_engine",
    "get_pool_snapshot",
    "instrument_engine",
]
