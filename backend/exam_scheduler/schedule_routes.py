"""Schedule REST endpoints consumed by the study calendar client."""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import (
    get_current_user_id,
    get_mutation_engine,
    get_profile_store,
    get_query_service,
    get_schedule_store,
    get_topic_catalog,
    get_week_planner,
)
from .errors import ScheduleValidationError, SchedulerError
from .mutations import MutationEngine
from .planner import WeekPlanner
from .profile_store import ScheduleProfileStore
from .queries import ScheduleQueryService
from .schedule_models import (
    MonthSummary,
    ScheduledSession,
    SchedulingProfile,
    SessionUpdateRequest,
    SubjectWithTopics,
    WeekPlanRequest,
    WeekPlanResponse,
)
from .schedule_store import ScheduleStore
from .topic_catalog import TopicCatalog

router = APIRouter(prefix="/schedule", tags=["schedule"])
logger = logging.getLogger(__name__)


def _raise_http(exc: SchedulerError, *, status_code: Optional[int] = None) -> NoReturn:
    raise HTTPException(status_code=status_code or exc.status_code, detail=exc.to_detail()) from exc


@router.get("/profile/{exam_id}", response_model=SchedulingProfile, status_code=status.HTTP_200_OK)
def get_profile(
    exam_id: int,
    user_id: str = Depends(get_current_user_id),
    profiles: ScheduleProfileStore = Depends(get_profile_store),
) -> SchedulingProfile:
    try:
        return profiles.get_profile(user_id, exam_id)
    except SchedulerError as exc:
        _raise_http(exc)


@router.post("/profile", response_model=SchedulingProfile, status_code=status.HTTP_200_OK)
def upsert_profile(
    payload: SchedulingProfile,
    user_id: str = Depends(get_current_user_id),
    profiles: ScheduleProfileStore = Depends(get_profile_store),
) -> SchedulingProfile:
    try:
        return profiles.upsert_profile(user_id, payload)
    except ScheduleValidationError as exc:
        _raise_http(exc, status_code=status.HTTP_400_BAD_REQUEST)
    except SchedulerError as exc:
        _raise_http(exc)


@router.post("/generate-week", response_model=WeekPlanResponse, status_code=status.HTTP_200_OK)
def generate_week(
    payload: WeekPlanRequest,
    user_id: str = Depends(get_current_user_id),
    planner: WeekPlanner = Depends(get_week_planner),
) -> WeekPlanResponse:
    try:
        sessions = planner.generate_week(user_id, payload)
    except ScheduleValidationError as exc:
        _raise_http(exc, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
    except SchedulerError as exc:
        _raise_http(exc)

    days: Dict[date, List[ScheduledSession]] = {}
    for entry in sorted(sessions, key=lambda item: (item.session_date, item.time_of_day)):
        days.setdefault(entry.session_date, []).append(entry)
    week_start = payload.week_start_date.isoformat()
    return WeekPlanResponse(
        message=f"Planned {len(sessions)} sessions for the week of {week_start}.",
        week_start_date=payload.week_start_date,
        session_count=len(sessions),
        days=days,
    )


@router.get("/month", response_model=Dict[int, List[ScheduledSession]], status_code=status.HTTP_200_OK)
def get_month(
    exam_id: int = Query(..., alias="examId"),
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    queries: ScheduleQueryService = Depends(get_query_service),
) -> Dict[int, List[ScheduledSession]]:
    try:
        return queries.get_month(user_id, exam_id, year, month)
    except ScheduleValidationError as exc:
        _raise_http(exc, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


@router.get("/month/summary", response_model=MonthSummary, status_code=status.HTTP_200_OK)
def get_month_summary(
    exam_id: int = Query(..., alias="examId"),
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    queries: ScheduleQueryService = Depends(get_query_service),
) -> MonthSummary:
    try:
        return queries.get_month_summary(user_id, exam_id, year, month)
    except ScheduleValidationError as exc:
        _raise_http(exc, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


@router.get("/session/{session_id}", response_model=ScheduledSession, status_code=status.HTTP_200_OK)
def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_schedule_store),
) -> ScheduledSession:
    try:
        return store.get_by_id(user_id, session_id)
    except SchedulerError as exc:
        _raise_http(exc)


@router.patch("/session/{session_id}", response_model=ScheduledSession, status_code=status.HTTP_200_OK)
def update_session(
    session_id: str,
    payload: SessionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: MutationEngine = Depends(get_mutation_engine),
) -> ScheduledSession:
    try:
        if payload.status is not None:
            return engine.mark_status(user_id, session_id, payload.status)
        assert payload.new_date is not None
        return engine.reschedule(user_id, session_id, payload.new_date)
    except ScheduleValidationError as exc:
        _raise_http(exc, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
    except SchedulerError as exc:
        _raise_http(exc)


@router.get("/topics/{exam_id}", response_model=List[SubjectWithTopics], status_code=status.HTTP_200_OK)
def get_topics(
    exam_id: int,
    user_id: str = Depends(get_current_user_id),
    catalog: TopicCatalog = Depends(get_topic_catalog),
) -> List[SubjectWithTopics]:
    try:
        return catalog.subjects_with_topics(exam_id)
    except SchedulerError as exc:
        logger.warning("Topic catalog unavailable for user=%s exam=%s", user_id, exam_id)
        _raise_http(exc)


__all__ = ["router"]
