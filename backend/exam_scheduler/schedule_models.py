"""Scheduling domain models shared by the allocator, stores and routes."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Weekday(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def position(self) -> int:
        return WEEKDAYS.index(self)

    @classmethod
    def of(cls, value: date) -> "Weekday":
        return WEEKDAYS[value.weekday()]


WEEKDAYS: List[Weekday] = list(Weekday)


class CurrentLevel(str, Enum):
    NEW = "NEW"
    MID = "MID"
    STRONG = "STRONG"


class StudyStyle(str, Enum):
    TESTS_FIRST = "TESTS_FIRST"
    CONCEPT_FIRST = "CONCEPT_FIRST"


class SessionMethod(str, Enum):
    STUDY = "STUDY"
    PRACTICE = "PRACTICE"
    TEST = "TEST"


class AssessmentKind(str, Enum):
    CONCEPT_QUIZ = "CONCEPT_QUIZ"
    DRILL_ACCURACY = "DRILL_ACCURACY"
    DRILL_SPEED = "DRILL_SPEED"
    MOCK = "MOCK"
    WEAKNESS_TEST = "WEAKNESS_TEST"

    @property
    def launchable(self) -> bool:
        return self is AssessmentKind.CONCEPT_QUIZ or self.value.startswith("DRILL_")


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.index(self)


PRIORITY_ORDER: List[Priority] = [Priority.HIGH, Priority.MEDIUM, Priority.LOW]


class SessionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class DifficultyLevel(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    ELITE = "Elite"


DIFFICULTY_ORDER: List[DifficultyLevel] = list(DifficultyLevel)


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class SchedulingProfile(_Payload):
    """Per-exam scheduling preferences captured from the profile form."""

    exam_id: int
    daily_available_hours: List[float]
    coaching_start_time: str
    coaching_end_time: str
    exam_date: Optional[date] = None
    current_level: CurrentLevel
    study_style: StudyStyle
    subject_confidence: Dict[str, int]
    preferred_mock_day: Weekday
    weakness_test_day: Optional[Weekday] = None
    updated_at: Optional[datetime] = None

    @field_validator("exam_date", mode="before")
    @classmethod
    def _blank_exam_date(cls, value: object) -> object:
        # the profile form submits "" when no exam date is picked
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def hours_for(self, weekday: Weekday) -> float:
        return self.daily_available_hours[weekday.position]

    def confidence_for(self, subject: str) -> int:
        lowered = subject.strip().lower()
        for name, value in self.subject_confidence.items():
            if name.strip().lower() == lowered:
                return value
        return 1


class WeekPlanRequest(_Payload):
    exam_id: int
    week_start_date: date
    topic_ids: List[int]
    mock_day: Weekday
    weakness_test_day: Optional[Weekday] = None
    custom_goals: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("topic_ids")
    @classmethod
    def _collapse_duplicates(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class RankedTopic(_Payload):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    topic_id: int
    subject: str
    weakness_score: float
    topic: Optional[str] = None

    @property
    def label(self) -> str:
        return self.topic or f"Topic {self.topic_id}"


class ScheduledSession(_Payload):
    """Single unit of scheduled work on a specific date and time."""

    # serialised copies carry the computed flags back in
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    owner_user_id: str
    exam_id: int
    session_date: date = Field(alias="date")
    week_start_date: date
    subject: str
    topic: str
    topic_id: Optional[int] = None
    method: SessionMethod
    test_kind: Optional[AssessmentKind] = None
    priority: Priority
    duration_minutes: int = Field(gt=0)
    time_of_day: str = "00:00"
    status: SessionStatus = SessionStatus.PENDING
    difficulty_level: Optional[DifficultyLevel] = None
    question_count: Optional[int] = Field(default=None, gt=0)
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    goal_note: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_test_metadata(self) -> "ScheduledSession":
        test_fields = (self.difficulty_level, self.question_count, self.time_limit_minutes)
        if self.method is SessionMethod.TEST:
            if self.test_kind is None or any(value is None for value in test_fields):
                raise ValueError("TEST sessions require testKind, difficultyLevel, questionCount and timeLimitMinutes.")
        elif self.test_kind is not None or any(value is not None for value in test_fields):
            raise ValueError("Only TEST sessions carry test metadata.")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def startable(self) -> bool:
        return self.method is SessionMethod.TEST and self.test_kind is not None and self.test_kind.launchable


class SessionUpdateRequest(_Payload):
    status: Optional[SessionStatus] = None
    new_date: Optional[date] = None

    @model_validator(mode="after")
    def _exactly_one_change(self) -> "SessionUpdateRequest":
        if (self.status is None) == (self.new_date is None):
            raise ValueError("Provide exactly one of status or newDate.")
        return self


class TopicOption(_Payload):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: int
    name: str


class SubjectWithTopics(_Payload):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: int
    name: str
    topics: List[TopicOption] = Field(default_factory=list)


class WeekPlanResponse(_Payload):
    message: str
    week_start_date: date
    session_count: int
    days: Dict[date, List[ScheduledSession]] = Field(default_factory=dict)


class MonthSummary(_Payload):
    year: int
    month: int
    total_sessions: int = 0
    completed_sessions: int = 0
    skipped_sessions: int = 0
    completion_rate: float = 0.0
    scheduled_minutes: int = 0
    subject_minutes: Dict[str, int] = Field(default_factory=dict)
    priority_counts: Dict[Priority, int] = Field(default_factory=dict)


__all__ = [
    "CurrentLevel",
    "DIFFICULTY_ORDER",
    "DifficultyLevel",
    "MonthSummary",
    "PRIORITY_ORDER",
    "Priority",
    "RankedTopic",
    "ScheduledSession",
    "SchedulingProfile",
    "SessionMethod",
    "SessionStatus",
    "SessionUpdateRequest",
    "StudyStyle",
    "SubjectWithTopics",
    "AssessmentKind",
    "TopicOption",
    "WEEKDAYS",
    "WeekPlanRequest",
    "WeekPlanResponse",
    "Weekday",
]
