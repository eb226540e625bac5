# backend/studio_engine/repositories/occurrence_repository.py
"""
Class occurrence repository.

Besides plain lookups this provides the occurrence row lock that serialises
every capacity decision for one class.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.enums import OccurrenceStatus
from ..core.exceptions import RepositoryException
from ..models.class_schedule import ClassOccurrence
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class OccurrenceRepository(BaseRepository[ClassOccurrence]):
    def __init__(self, db: Session):
        super().__init__(db, ClassOccurrence)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(ClassOccurrence.template))

    def lock(self, occurrence_id: int) -> Optional[ClassOccurrence]:
        """
        Lock the occurrence row for the rest of the transaction.

        Every create/cancel/promote path takes this lock before counting
        registrations, so two concurrent bookings for the last seat are
        decided one after the other.
        """
        return self.get_for_update(occurrence_id)

    def get_for_trainer_in_period(
        self,
        trainer_id: int,
        period_start: datetime,
        period_end: datetime,
        include_cancelled: bool = False,
    ) -> List[ClassOccurrence]:
        """
        Occurrences led by ``trainer_id`` starting inside the inclusive period.

        Returns:
            Occurrences with template and registrations loaded, ordered by start
        """
        try:
            query = (
                self.db.query(ClassOccurrence)
                .options(
                    joinedload(ClassOccurrence.template),
                    selectinload(ClassOccurrence.registrations),
                )
                .filter(
                    ClassOccurrence.trainer_id == trainer_id,
                    ClassOccurrence.starts_at >= period_start,
                    ClassOccurrence.starts_at <= period_end,
                )
            )
            if not include_cancelled:
                query = query.filter(ClassOccurrence.status != OccurrenceStatus.CANCELLED.value)
            return cast(
                List[ClassOccurrence],
                query.order_by(ClassOccurrence.starts_at, ClassOccurrence.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting occurrences for trainer {trainer_id}: {str(e)}")
            raise RepositoryException(f"Failed to get occurrences for settlement: {str(e)}")
