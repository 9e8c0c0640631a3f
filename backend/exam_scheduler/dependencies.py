"""FastAPI dependency providers for the schedule router."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, status

from .errors import CatalogUnavailable
from .mutations import MutationEngine, mutation_engine
from .planner import WeekPlanner, week_planner
from .profile_store import ScheduleProfileStore, profile_store
from .queries import ScheduleQueryService, query_service
from .schedule_store import ScheduleStore, schedule_store
from .topic_catalog import HttpTopicCatalog, TopicCatalog


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identity forwarded by the gateway; the service never accepts a user id from the body."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "Unauthenticated", "message": "Missing X-User-Id header."},
        )
    return x_user_id.strip()


def get_profile_store() -> ScheduleProfileStore:
    return profile_store


def get_schedule_store() -> ScheduleStore:
    return schedule_store


def get_week_planner() -> WeekPlanner:
    return week_planner


def get_mutation_engine() -> MutationEngine:
    return mutation_engine


def get_query_service() -> ScheduleQueryService:
    return query_service


def get_topic_catalog() -> TopicCatalog:
    try:
        return HttpTopicCatalog.from_settings()
    except CatalogUnavailable as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc


__all__ = [
    "get_current_user_id",
    "get_mutation_engine",
    "get_profile_store",
    "get_query_service",
    "get_schedule_store",
    "get_topic_catalog",
    "get_week_planner",
]
