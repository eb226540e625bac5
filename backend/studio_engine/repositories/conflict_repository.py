# backend/studio_engine/repositories/conflict_repository.py
"""
Conflict Repository for the studio booking engine.

Reads overlapping bookings from both booking tables. Overlap is evaluated
in SQL with the half-open rule (``starts_at < end and ends_at > start``) so
the index on (room_id/staff, starts_at, ends_at) is usable; the detector
re-checks the windows in Python after adapting rows to bookables.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import OccurrenceStatus, SessionStatus
from ..core.exceptions import RepositoryException
from ..models.class_schedule import ClassOccurrence
from ..models.session import IndividualSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictRepository(BaseRepository[IndividualSession]):
    """
    Repository for conflict checking data access.

    Covers individual sessions (primary model) and class occurrences.
    """

    def __init__(self, db: Session):
        super().__init__(db, IndividualSession)
        self.logger = logging.getLogger(__name__)

    def get_overlapping_sessions(
        self,
        start: datetime,
        end: datetime,
        room_id: Optional[int] = None,
        staff_id: Optional[int] = None,
        exclude_session_id: Optional[int] = None,
    ) -> List[IndividualSession]:
        """
        Get non-cancelled individual sessions overlapping ``[start, end)``
        in the room or with the staff member.
        """
        if room_id is None and staff_id is None:
            return []
        try:
            resource_filters = []
            if room_id is not None:
                resource_filters.append(IndividualSession.room_id == room_id)
            if staff_id is not None:
                resource_filters.append(IndividualSession.staff_id == staff_id)

            query = (
                self.db.query(IndividualSession)
                .options(joinedload(IndividualSession.client))
                .filter(
                    or_(*resource_filters),
                    IndividualSession.status != SessionStatus.CANCELLED.value,
                    IndividualSession.starts_at < end,
                    IndividualSession.ends_at > start,
                )
            )
            if exclude_session_id is not None:
                query = query.filter(IndividualSession.id != exclude_session_id)

            return cast(
                List[IndividualSession],
                query.order_by(IndividualSession.starts_at, IndividualSession.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting overlapping sessions: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting sessions: {str(e)}")

    def get_overlapping_occurrences(
        self,
        start: datetime,
        end: datetime,
        room_id: Optional[int] = None,
        staff_id: Optional[int] = None,
        exclude_occurrence_id: Optional[int] = None,
    ) -> List[ClassOccurrence]:
        """
        Get non-cancelled class occurrences overlapping ``[start, end)``
        in the room or led by the staff member.
        """
        if room_id is None and staff_id is None:
            return []
        try:
            resource_filters = []
            if room_id is not None:
                resource_filters.append(ClassOccurrence.room_id == room_id)
            if staff_id is not None:
                resource_filters.append(ClassOccurrence.trainer_id == staff_id)

            query = (
                self.db.query(ClassOccurrence)
                .options(joinedload(ClassOccurrence.template))
                .filter(
                    or_(*resource_filters),
                    ClassOccurrence.status != OccurrenceStatus.CANCELLED.value,
                    ClassOccurrence.starts_at < end,
                    ClassOccurrence.ends_at > start,
                )
            )
            if exclude_occurrence_id is not None:
                query = query.filter(ClassOccurrence.id != exclude_occurrence_id)

            return cast(
                List[ClassOccurrence],
                query.order_by(ClassOccurrence.starts_at, ClassOccurrence.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting overlapping occurrences: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting occurrences: {str(e)}")
