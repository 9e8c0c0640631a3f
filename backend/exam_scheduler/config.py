import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="SCHEDULER_DATABASE_URL")
    database_pool_size: int = Field(10, alias="SCHEDULER_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="SCHEDULER_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="SCHEDULER_DATABASE_ECHO")
    weakness_index_url: Optional[str] = Field(None, alias="SCHEDULER_WEAKNESS_INDEX_URL")
    weakness_index_timeout_ms: int = Field(5000, alias="SCHEDULER_WEAKNESS_INDEX_TIMEOUT_MS")
    topic_catalog_url: Optional[str] = Field(None, alias="SCHEDULER_TOPIC_CATALOG_URL")
    topic_catalog_timeout_ms: int = Field(5000, alias="SCHEDULER_TOPIC_CATALOG_TIMEOUT_MS")
    day_start_time: str = Field("06:00", alias="SCHEDULER_DAY_START_TIME", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    study_session_minutes: int = Field(60, alias="SCHEDULER_STUDY_SESSION_MINUTES", ge=5, le=240)
    practice_session_minutes: int = Field(45, alias="SCHEDULER_PRACTICE_SESSION_MINUTES", ge=5, le=240)
    check_test_minutes: int = Field(30, alias="SCHEDULER_CHECK_TEST_MINUTES", ge=5, le=240)
    max_sessions_per_topic: int = Field(6, alias="SCHEDULER_MAX_SESSIONS_PER_TOPIC", ge=1)
    near_term_horizon_days: int = Field(30, alias="SCHEDULER_NEAR_TERM_HORIZON_DAYS", ge=0)
    min_fixed_slot_minutes: int = Field(60, alias="SCHEDULER_MIN_FIXED_SLOT_MINUTES", ge=1)
    weakness_test_max_minutes: int = Field(180, alias="SCHEDULER_WEAKNESS_TEST_MAX_MINUTES", ge=1)
    minutes_per_question: float = Field(2.0, alias="SCHEDULER_MINUTES_PER_QUESTION", gt=0)

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid scheduler configuration: {exc}") from exc
