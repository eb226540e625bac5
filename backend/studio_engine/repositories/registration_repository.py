# backend/studio_engine/repositories/registration_repository.py
"""
Class registration repository.

All queries here assume the caller already holds the occurrence row lock
when the answer feeds a capacity decision.
"""

import logging
from typing import Iterable, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import RegistrationStatus
from ..core.exceptions import RepositoryException
from ..models.class_schedule import ClassRegistration
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _status_values(statuses: Iterable[RegistrationStatus]) -> List[str]:
    return sorted(status.value for status in statuses)


class RegistrationRepository(BaseRepository[ClassRegistration]):
    def __init__(self, db: Session):
        super().__init__(db, ClassRegistration)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(ClassRegistration.occurrence),
            joinedload(ClassRegistration.client),
        )

    def count_confirmed(self, occurrence_id: int) -> int:
        """Registrations occupying a seat (booked or attended)."""
        try:
            return (
                self.db.query(ClassRegistration)
                .filter(
                    ClassRegistration.occurrence_id == occurrence_id,
                    ClassRegistration.status.in_(_status_values(RegistrationStatus.confirmed())),
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting confirmed for {occurrence_id}: {str(e)}")
            raise RepositoryException(f"Failed to count registrations: {str(e)}")

    def find_active(self, occurrence_id: int, client_id: int) -> Optional[ClassRegistration]:
        """The client's booked or waitlisted registration, if any."""
        try:
            return cast(
                Optional[ClassRegistration],
                self.db.query(ClassRegistration)
                .filter(
                    ClassRegistration.occurrence_id == occurrence_id,
                    ClassRegistration.client_id == client_id,
                    ClassRegistration.status.in_(_status_values(RegistrationStatus.active())),
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding active registration: {str(e)}")
            raise RepositoryException(f"Failed to find registration: {str(e)}")

    def next_waitlisted(self, occurrence_id: int) -> Optional[ClassRegistration]:
        """Oldest waitlisted registration; ties on booked_at go to the lower id."""
        try:
            return cast(
                Optional[ClassRegistration],
                self.db.query(ClassRegistration)
                .filter(
                    ClassRegistration.occurrence_id == occurrence_id,
                    ClassRegistration.status == RegistrationStatus.WAITLIST.value,
                )
                .order_by(ClassRegistration.booked_at.asc(), ClassRegistration.id.asc())
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting waitlist head for {occurrence_id}: {str(e)}")
            raise RepositoryException(f"Failed to read waitlist: {str(e)}")

    def list_for_occurrence(
        self,
        occurrence_id: int,
        statuses: Optional[Iterable[RegistrationStatus]] = None,
    ) -> List[ClassRegistration]:
        """Registrations ordered by booking time, clients loaded."""
        try:
            query = (
                self.db.query(ClassRegistration)
                .options(joinedload(ClassRegistration.client))
                .filter(ClassRegistration.occurrence_id == occurrence_id)
            )
            if statuses is not None:
                query = query.filter(ClassRegistration.status.in_(_status_values(statuses)))
            return cast(
                List[ClassRegistration],
                query.order_by(ClassRegistration.booked_at, ClassRegistration.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing registrations for {occurrence_id}: {str(e)}")
            raise RepositoryException(f"Failed to list registrations: {str(e)}")
