"""
Domain models for time range and slot calculations.
"""

from dataclasses import dataclass
from datetime import time
from typing import Dict

from pendulum import DateTime

from . import timeutil
from .exceptions import InvalidDurationError, InvalidLimitError, InvalidWindowError


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable, half-open time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def to_dict(self) -> Dict[str, str]:
        return {
            "start": timeutil.to_utc_iso(self.start),
            "end": timeutil.to_utc_iso(self.end),
        }

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class QueryWindow:
    """
    The half-open global range searched for free slots.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidWindowError(
                f"Window start {self.start} must be before window end {self.end}"
            )


@dataclass(frozen=True)
class BusinessHours:
    """
    Recurring daily window during which slots may be offered.

    The same local times apply to every civil day.
    """
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Business hours must open before they close, got {self.start_time}-{self.end_time}"
            )

    def window_for_day(self, day: DateTime, timezone: str) -> TimeRange:
        """
        Get the business-hours range for a civil day in the given zone.
        """
        return TimeRange(
            start=timeutil.at_local_time(day, self.start_time, timezone),
            end=timeutil.at_local_time(day, self.end_time, timezone),
        )


@dataclass(frozen=True)
class SlotRequest:
    """
    A validated free-slot query. Construction fails fast on malformed input.
    """
    window: QueryWindow
    timezone: str
    duration_minutes: int
    max_slots: int

    def __post_init__(self):
        timeutil.ensure_timezone(self.timezone)
        if self.duration_minutes <= 0:
            raise InvalidDurationError(
                f"Slot duration must be greater than zero, got {self.duration_minutes}"
            )
        if self.max_slots <= 0:
            raise InvalidLimitError(
                f"Slot limit must be greater than zero, got {self.max_slots}"
            )


@dataclass(frozen=True)
class FreeSlot:
    """
    Represents a found bookable slot.
    """
    time_range: TimeRange
    timezone: str

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def label(self) -> str:
        """
        Human readable start, e.g. ``Tuesday, November 12, 9:00 AM (America/Chicago)``.
        """
        local_start = self.start.in_timezone(self.timezone)
        return f"{local_start.format('dddd, MMMM D, h:mm A')} ({self.timezone})"

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM – HH:MM (N min)
        """
        start = self.start.in_timezone(self.timezone)
        end = self.end.in_timezone(self.timezone)

        date_str = start.format("dddd, YYYY-MM-DD")
        time_str = f"{start.format('HH:mm')} – {end.format('HH:mm')}"
        duration = self.time_range.duration_minutes()

        return f"{date_str} | {time_str} ({duration} min)"

    def to_dict(self) -> Dict[str, str]:
        data = self.time_range.to_dict()
        data["label"] = self.label()
        return data
