# backend/studio_engine/repositories/session_repository.py
"""
Individual session repository.

Data access for sessions and their additional guests. No business rules
live here: pricing, conflict checks and attendance policy are applied by the
scheduling and settlement services.
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.session import AdditionalGuest, IndividualSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionRepository(BaseRepository[IndividualSession]):
    def __init__(self, db: Session):
        super().__init__(db, IndividualSession)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(IndividualSession.client),
            selectinload(IndividualSession.guests),
        )

    def get_for_staff_in_period(
        self,
        staff_id: int,
        period_start: datetime,
        period_end: datetime,
        statuses: Optional[Sequence[str]] = None,
    ) -> List[IndividualSession]:
        """
        Sessions led by ``staff_id`` starting inside the inclusive period.

        Args:
            statuses: Optional whitelist of session statuses

        Returns:
            Sessions with guests loaded, ordered by start time then id
        """
        try:
            query = (
                self.db.query(IndividualSession)
                .options(selectinload(IndividualSession.guests))
                .filter(
                    IndividualSession.staff_id == staff_id,
                    IndividualSession.starts_at >= period_start,
                    IndividualSession.starts_at <= period_end,
                )
            )
            if statuses:
                query = query.filter(IndividualSession.status.in_(list(statuses)))
            return cast(
                List[IndividualSession],
                query.order_by(IndividualSession.starts_at, IndividualSession.id).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting sessions for staff {staff_id}: {str(e)}")
            raise RepositoryException(f"Failed to get sessions for settlement: {str(e)}")

    # Additional guests

    def find_guest(self, session_id: int, client_id: int) -> Optional[AdditionalGuest]:
        try:
            return cast(
                Optional[AdditionalGuest],
                self.db.query(AdditionalGuest)
                .filter(
                    AdditionalGuest.session_id == session_id,
                    AdditionalGuest.client_id == client_id,
                )
                .order_by(AdditionalGuest.guest_index)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding guest on session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to find guest: {str(e)}")

    def next_guest_index(self, session_id: int) -> int:
        try:
            current = (
                self.db.query(func.max(AdditionalGuest.guest_index))
                .filter(AdditionalGuest.session_id == session_id)
                .scalar()
            )
            return 0 if current is None else int(current) + 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error computing guest index for {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to compute guest index: {str(e)}")

    def add_guest(self, **kwargs) -> AdditionalGuest:
        try:
            guest = AdditionalGuest(**kwargs)
            self.db.add(guest)
            self.db.flush()
            return guest
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding guest: {str(e)}")
            raise RepositoryException(f"Failed to add guest: {str(e)}")
