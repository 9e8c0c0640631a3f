"""Daily time-budget helpers: study windows, coaching blackouts and slot layout."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .schedule_models import SchedulingProfile, Weekday

MINUTES_PER_DAY = 24 * 60
_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

T = TypeVar("T")
Interval = Tuple[int, int]


def parse_clock(value: str) -> Optional[int]:
    """Return minutes since midnight for an ``HH:MM`` string, or ``None`` when malformed."""
    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock(minutes: int) -> str:
    minutes = min(max(minutes, 0), MINUTES_PER_DAY - 1)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class DayWindow:
    """Study window for one weekday with the coaching blackout carved out."""

    start: int
    end: int
    blackout_start: int
    blackout_end: int

    @property
    def overlap(self) -> int:
        return max(0, min(self.end, self.blackout_end) - max(self.start, self.blackout_start))

    @property
    def usable_minutes(self) -> int:
        return max(0, self.end - self.start - self.overlap)


def day_window(profile: SchedulingProfile, weekday: Weekday, day_start: int) -> DayWindow:
    available = int(round(profile.hours_for(weekday) * 60))
    end = min(day_start + max(available, 0), MINUTES_PER_DAY)
    blackout_start = parse_clock(profile.coaching_start_time) or 0
    blackout_end = parse_clock(profile.coaching_end_time) or 0
    if blackout_end < blackout_start:
        blackout_end = blackout_start
    return DayWindow(start=day_start, end=end, blackout_start=blackout_start, blackout_end=blackout_end)


def usable_minutes(profile: SchedulingProfile, on: date, day_start: int) -> int:
    """Minutes available for sessions on ``on`` after removing the coaching blackout."""
    return day_window(profile, Weekday.of(on), day_start).usable_minutes


def _first_free(cursor: int, minutes: int, blocked: Sequence[Interval]) -> int:
    moved = True
    while moved:
        moved = False
        for start, end in blocked:
            if cursor < end and cursor + minutes > start:
                cursor = end
                moved = True
    return cursor


def layout_times(
    items: Sequence[T],
    duration: Callable[[T], int],
    window: DayWindow,
    busy: Sequence[Interval] = (),
) -> List[Tuple[T, str]]:
    """Lay ``items`` out contiguously from the window start.

    Items never overlap the coaching blackout or any ``busy`` interval
    (minutes since midnight, end exclusive); they move past them instead.
    """
    blocked = [(start, end) for start, end in busy if end > start]
    if window.blackout_end > window.blackout_start:
        blocked.append((window.blackout_start, window.blackout_end))
    blocked.sort()
    cursor = window.start
    placed: List[Tuple[T, str]] = []
    for item in items:
        minutes = duration(item)
        cursor = _first_free(cursor, minutes, blocked)
        placed.append((item, format_clock(cursor)))
        cursor += minutes
    return placed


__all__ = [
    "DayWindow",
    "Interval",
    "MINUTES_PER_DAY",
    "day_window",
    "format_clock",
    "layout_times",
    "parse_clock",
    "usable_minutes",
]
