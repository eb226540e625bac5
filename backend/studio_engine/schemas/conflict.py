# backend/studio_engine/schemas/conflict.py
"""
Conflict schemas.

Both booking tables are adapted to a single ``Bookable`` value so overlap
logic is written once; ``ConflictEntry`` is what callers get back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import Field

from ..core.constants import BLOCK_LABEL, UNKNOWN_CLIENT_LABEL
from ..core.enums import BookingKind
from ..core.time_window import TimeWindow
from ._strict_base import ResultModel

if TYPE_CHECKING:
    from ..models.class_schedule import ClassOccurrence
    from ..models.session import IndividualSession

ConflictScope = Literal["room", "staff", "room+staff"]


@dataclass(frozen=True)
class Bookable:
    """Anything that occupies a room and a staff member for a window."""

    kind: BookingKind
    id: int
    room_id: int
    staff_id: int
    window: TimeWindow
    label: str

    @classmethod
    def from_session(cls, session: "IndividualSession") -> "Bookable":
        if session.is_block:
            label = BLOCK_LABEL
        elif session.client is not None:
            label = session.client.full_name
        else:
            label = UNKNOWN_CLIENT_LABEL
        return cls(
            kind=BookingKind.INDIVIDUAL,
            id=session.id,
            room_id=session.room_id,
            staff_id=session.staff_id,
            window=session.window,
            label=label,
        )

    @classmethod
    def from_occurrence(cls, occurrence: "ClassOccurrence") -> "Bookable":
        return cls(
            kind=BookingKind.CLASS,
            id=occurrence.id,
            room_id=occurrence.room_id,
            staff_id=occurrence.trainer_id,
            window=occurrence.window,
            label=occurrence.display_title,
        )

    @property
    def key(self) -> tuple[BookingKind, int]:
        return (self.kind, self.id)


class ConflictEntry(ResultModel):
    kind: BookingKind
    id: int
    starts_at: datetime
    ends_at: datetime
    label: str
    room_id: int
    staff_id: int
    scope: ConflictScope = Field(description="Which requested resource the booking collides on")
    overlap_minutes: int = Field(ge=0)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.starts_at, self.ends_at)

    @classmethod
    def from_bookable(
        cls, bookable: Bookable, requested: TimeWindow, scope: ConflictScope
    ) -> "ConflictEntry":
        return cls(
            kind=bookable.kind,
            id=bookable.id,
            starts_at=bookable.window.start,
            ends_at=bookable.window.end,
            label=bookable.label,
            room_id=bookable.room_id,
            staff_id=bookable.staff_id,
            scope=scope,
            overlap_minutes=requested.overlap_minutes(bookable.window),
        )

    def describe(self) -> str:
        return f"{self.kind.value} #{self.id} ({self.label}) {self.window}"
