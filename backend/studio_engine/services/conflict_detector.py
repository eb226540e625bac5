# backend/studio_engine/services/conflict_detector.py
"""
Conflict Detector Service for the studio booking engine.

Handles booking conflict detection across both booking tables:
- Room exclusivity: one booking per room at a time
- Staff exclusivity: one booking per staff member at a time, in any room
- Self-exclusion when an existing booking is being moved

Individual sessions and class occurrences are adapted to ``Bookable`` values
first, so the overlap rule below is the only one in the engine.
"""

from datetime import date, time
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.enums import BookingKind
from ..core.exceptions import ConflictError
from ..core.time_window import TimeWindow
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.conflict_repository import ConflictRepository
from ..schemas.conflict import Bookable, ConflictEntry, ConflictScope
from .base import BaseService

logger = logging.getLogger(__name__)


class ConflictDetector(BaseService):
    """
    Service for checking room and staff conflicts.

    Read-only: it never takes locks or writes. Callers that go on to insert
    run the check inside their own transaction.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictRepository] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize conflict detector service.

        Args:
            db: Database session
            repository: Optional ConflictRepository instance
            config: Optional Settings instance
        """
        super().__init__(db, config)
        self.repository = repository or RepositoryFactory.create_conflict_repository(db)

    def _candidate_bookables(
        self,
        window: TimeWindow,
        room_id: Optional[int],
        staff_id: Optional[int],
        exclude_session_id: Optional[int],
        exclude_occurrence_id: Optional[int],
    ) -> List[Bookable]:
        sessions = self.repository.get_overlapping_sessions(
            window.start,
            window.end,
            room_id=room_id,
            staff_id=staff_id,
            exclude_session_id=exclude_session_id,
        )
        occurrences = self.repository.get_overlapping_occurrences(
            window.start,
            window.end,
            room_id=room_id,
            staff_id=staff_id,
            exclude_occurrence_id=exclude_occurrence_id,
        )
        return [Bookable.from_session(s) for s in sessions] + [
            Bookable.from_occurrence(o) for o in occurrences
        ]

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        room_id: int,
        window: TimeWindow,
        staff_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
        exclude_occurrence_id: Optional[int] = None,
    ) -> List[ConflictEntry]:
        """
        Find every non-cancelled booking that collides with ``window``.

        Args:
            room_id: Room being requested
            window: Requested half-open time window
            staff_id: Staff member being requested; also checked in other rooms
            exclude_session_id: Individual session being moved
            exclude_occurrence_id: Class occurrence being moved

        Returns:
            One entry per colliding booking, ordered by start time
        """
        seen: Dict[Tuple[BookingKind, int], ConflictEntry] = {}
        for bookable in self._candidate_bookables(
            window, room_id, staff_id, exclude_session_id, exclude_occurrence_id
        ):
            if bookable.key in seen or not window.overlaps(bookable.window):
                continue

            room_hit = bookable.room_id == room_id
            staff_hit = staff_id is not None and bookable.staff_id == staff_id
            if not (room_hit or staff_hit):
                continue

            scope: ConflictScope
            if room_hit and staff_hit:
                scope = "room+staff"
            elif room_hit:
                scope = "room"
            else:
                scope = "staff"
            seen[bookable.key] = ConflictEntry.from_bookable(bookable, window, scope)

        conflicts = sorted(seen.values(), key=lambda c: (c.starts_at, c.kind.value, c.id))

        if conflicts:
            for conflict in conflicts:
                prometheus_metrics.inc_conflict(conflict.kind.value)
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for room {room_id}"
                f"{f' / staff {staff_id}' if staff_id is not None else ''} between {window}"
            )

        return conflicts

    def has_conflict(
        self,
        room_id: int,
        window: TimeWindow,
        staff_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
        exclude_occurrence_id: Optional[int] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(
                room_id,
                window,
                staff_id=staff_id,
                exclude_session_id=exclude_session_id,
                exclude_occurrence_id=exclude_occurrence_id,
            )
        )

    def assert_no_conflict(
        self,
        room_id: int,
        window: TimeWindow,
        staff_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
        exclude_occurrence_id: Optional[int] = None,
    ) -> None:
        """
        Raise ConflictError carrying every collision when the window is taken.

        Raises:
            ConflictError: If any booking overlaps in the room or for the staff member
        """
        conflicts = self.find_conflicts(
            room_id,
            window,
            staff_id=staff_id,
            exclude_session_id=exclude_session_id,
            exclude_occurrence_id=exclude_occurrence_id,
        )
        if conflicts:
            raise ConflictError(conflicts)

    @BaseService.measure_operation("get_booked_windows")
    def get_booked_windows(self, room_id: int, day: date) -> List[Bookable]:
        """
        Get every non-cancelled booking in a room on a calendar day.

        Bookings crossing midnight are included on both days.

        Returns:
            Bookables ordered by start time
        """
        day_window = TimeWindow.on_date(day, time.min, 24 * 60)
        bookables = self._candidate_bookables(day_window, room_id, None, None, None)
        return sorted(bookables, key=lambda b: (b.window.start, b.kind.value, b.id))
