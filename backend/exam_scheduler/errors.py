"""Typed failures raised by the scheduler core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldViolation:
    field: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class SchedulerError(Exception):
    """Base class for every failure reported to scheduler callers."""

    code = "SchedulerError"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ScheduleValidationError(SchedulerError):
    code = "ValidationError"
    status_code = 400

    def __init__(self, violations: List[FieldViolation], message: Optional[str] = None) -> None:
        self.violations = list(violations)
        if message is None:
            fields = ", ".join(violation.field for violation in self.violations)
            message = f"Invalid value for: {fields}." if fields else "Invalid request."
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["fields"] = [violation.as_dict() for violation in self.violations]
        return detail


class InvalidWeekStart(SchedulerError):
    code = "InvalidWeekStart"
    status_code = 422


class ConflictingFixedDay(SchedulerError):
    code = "ConflictingFixedDay"
    status_code = 409


class NoTopicsSelected(SchedulerError):
    code = "NoTopicsSelected"
    status_code = 422


class InsufficientTimeForFixedSlot(SchedulerError):
    code = "InsufficientTimeForFixedSlot"
    status_code = 422


class OverBudget(SchedulerError):
    code = "OverBudget"
    status_code = 409


class InvalidTransition(SchedulerError):
    code = "InvalidTransition"
    status_code = 409


class NotFound(SchedulerError):
    code = "NotFound"
    status_code = 404


class ProfileNotFound(NotFound):
    pass


class SessionNotFound(NotFound):
    pass


class WeaknessIndexUnavailable(SchedulerError):
    code = "WeaknessIndexUnavailable"
    status_code = 503


class CatalogUnavailable(SchedulerError):
    code = "CatalogUnavailable"
    status_code = 503


__all__ = [
    "CatalogUnavailable",
    "ConflictingFixedDay",
    "FieldViolation",
    "InsufficientTimeForFixedSlot",
    "InvalidTransition",
    "InvalidWeekStart",
    "NoTopicsSelected",
    "NotFound",
    "OverBudget",
    "ProfileNotFound",
    "ScheduleValidationError",
    "SchedulerError",
    "SessionNotFound",
    "WeaknessIndexUnavailable",
]
