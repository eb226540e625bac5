# backend/studio_engine/core/time_window.py
"""
Half-open time interval used by every overlap check in the engine.

A window ``[start, end)`` overlaps another when each starts before the other
ends, so back-to-back bookings (10:00-11:00 followed by 11:00-12:00) never
collide.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .exceptions import ValidationException


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationException(
                "Time window end must be after its start",
                code="INVALID_TIME_WINDOW",
                details={"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> "TimeWindow":
        return cls(start, start + timedelta(minutes=minutes))

    @classmethod
    def on_date(cls, day: date, anchor_time: time, minutes: int) -> "TimeWindow":
        """Build the window that starts at ``anchor_time`` on ``day``."""
        return cls.from_duration(datetime.combine(day, anchor_time), minutes)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def overlap_minutes(self, other: "TimeWindow") -> int:
        """Minutes shared by both windows, 0 when they do not overlap."""
        if not self.overlaps(other):
            return 0
        shared = min(self.end, other.end) - max(self.start, other.start)
        return int(shared.total_seconds() // 60)

    def shifted(self, delta: timedelta) -> "TimeWindow":
        return TimeWindow(self.start + delta, self.end + delta)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"
