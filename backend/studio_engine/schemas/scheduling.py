# backend/studio_engine/schemas/scheduling.py
"""
Scheduling schemas for individual sessions and class occurrences.

Inputs are assumed to be validated by the caller's API layer; these models
only enforce the shape the engine relies on (a window that ends after it
starts, a client for non-block sessions).
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.enums import SessionType, Weekday
from ._strict_base import ResultModel, StrictRequestModel
from .conflict import ConflictEntry
from .pricing import GuestAssignment


def _check_window(starts_at: Optional[datetime], ends_at: Optional[datetime]) -> None:
    if starts_at is not None and ends_at is not None and ends_at <= starts_at:
        raise ValueError("ends_at must be after starts_at")


class SessionCreate(StrictRequestModel):
    session_type: SessionType = SessionType.INDIVIDUAL
    staff_id: int
    room_id: int
    client_id: Optional[int] = None
    starts_at: datetime
    ends_at: datetime
    service_type_id: Optional[int] = None
    guests: List[GuestAssignment] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _validate_session(self) -> "SessionCreate":
        _check_window(self.starts_at, self.ends_at)
        if self.session_type == SessionType.INDIVIDUAL and self.client_id is None:
            raise ValueError("client_id is required for an individual session")
        if self.session_type == SessionType.BLOCK and self.guests:
            raise ValueError("block sessions cannot carry guests")
        return self


class SessionUpdate(StrictRequestModel):
    """Partial update; unset fields keep their current value."""

    staff_id: Optional[int] = None
    room_id: Optional[int] = None
    client_id: Optional[int] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    service_type_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _validate_window(self) -> "SessionUpdate":
        _check_window(self.starts_at, self.ends_at)
        return self


class RecurringSessionCreate(StrictRequestModel):
    """Weekly individual session definition expanded over a date range."""

    session_type: SessionType = SessionType.INDIVIDUAL
    staff_id: int
    room_id: int
    client_id: Optional[int] = None
    weekday: Weekday
    start_time: time
    duration_minutes: int = Field(gt=0)
    service_type_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _validate_client(self) -> "RecurringSessionCreate":
        if self.session_type == SessionType.INDIVIDUAL and self.client_id is None:
            raise ValueError("client_id is required for an individual session")
        return self


class OccurrenceCreate(StrictRequestModel):
    template_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    room_id: Optional[int] = None
    trainer_id: Optional[int] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    credits_required: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _validate_occurrence(self) -> "OccurrenceCreate":
        _check_window(self.starts_at, self.ends_at)
        if self.template_id is None:
            missing = [
                name
                for name in ("room_id", "trainer_id", "ends_at", "capacity")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(f"{', '.join(missing)} required when no template is given")
        return self


class OccurrenceUpdate(StrictRequestModel):
    room_id: Optional[int] = None
    trainer_id: Optional[int] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    title: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def _validate_window(self) -> "OccurrenceUpdate":
        _check_window(self.starts_at, self.ends_at)
        return self


class RecurringOccurrenceCreate(StrictRequestModel):
    """Weekly class definition; template values fill any unset field."""

    template_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    room_id: Optional[int] = None
    trainer_id: Optional[int] = None
    weekday: Optional[Weekday] = None
    start_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, ge=0)
    credits_required: Optional[int] = Field(None, ge=0)


class SkippedDate(ResultModel):
    skipped_on: date
    conflicts: List[ConflictEntry] = Field(default_factory=list)


class RecurrenceResult(ResultModel):
    """Outcome of a recurring batch: what was created and what was skipped."""

    created_ids: List[int] = Field(default_factory=list)
    skipped: List[SkippedDate] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created_ids)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def skipped_dates(self) -> List[date]:
        return [entry.skipped_on for entry in self.skipped]
