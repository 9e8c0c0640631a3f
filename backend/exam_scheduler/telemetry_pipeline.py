"""Telemetry listener that persists generation and mutation events as an audit trail."""

from __future__ import annotations

import logging
from typing import Set

from .schedule_store import schedule_store
from .telemetry import TelemetryEvent, register_listener, unregister_listener

logger = logging.getLogger(__name__)

AUDITED_EVENTS: Set[str] = {
    "schedule_generation",
    "session_status_changed",
    "session_rescheduled",
    "profile_upserted",
}


def persist_event(event: TelemetryEvent) -> None:
    if event.name not in AUDITED_EVENTS:
        return
    user_id = event.payload.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        return
    exam_id = event.payload.get("exam_id")
    try:
        schedule_store.record_audit(
            user_id,
            exam_id if isinstance(exam_id, int) else None,
            event.name,
            event.payload,
        )
    except Exception:  # noqa: BLE001
        # the audit trail must never fail the request that produced the event
        logger.exception("Failed to persist audit event %s for user=%s", event.name, user_id)


def install() -> None:
    register_listener(persist_event)


def uninstall() -> None:
    unregister_listener(persist_event)


__all__ = ["AUDITED_EVENTS", "install", "persist_event", "uninstall"]
