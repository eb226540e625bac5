# backend/studio_engine/repositories/pass_repository.py
"""
Pass repository.

Passes are consumed soonest-expiring first so credits that would lapse are
used before credits that would not.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import PassStatus
from ..core.exceptions import RepositoryException
from ..models.client import Pass
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PassRepository(BaseRepository[Pass]):
    def __init__(self, db: Session):
        super().__init__(db, Pass)

    def get_usable(
        self, client_id: int, at: datetime, lock: bool = False
    ) -> List[Pass]:
        """
        Active passes with credits left and valid at ``at``.

        Args:
            lock: Take row locks (FOR UPDATE) on the returned passes

        Returns:
            Passes ordered by valid_until, then id
        """
        try:
            query = self.db.query(Pass).filter(
                Pass.client_id == client_id,
                Pass.status == PassStatus.ACTIVE.value,
                Pass.credits_left > 0,
                Pass.valid_from <= at,
                Pass.valid_until >= at,
            )
            if lock:
                query = query.with_for_update().populate_existing()
            return cast(List[Pass], query.order_by(Pass.valid_until.asc(), Pass.id.asc()).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting usable passes for {client_id}: {str(e)}")
            raise RepositoryException(f"Failed to get passes: {str(e)}")

    def get_latest_for_client(self, client_id: int) -> Optional[Pass]:
        """Latest-expiring active or depleted pass; refund target of last resort."""
        try:
            return cast(
                Optional[Pass],
                self.db.query(Pass)
                .filter(
                    Pass.client_id == client_id,
                    Pass.status.in_([PassStatus.ACTIVE.value, PassStatus.DEPLETED.value]),
                )
                .order_by(Pass.valid_until.desc(), Pass.id.desc())
                .with_for_update()
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting latest pass for {client_id}: {str(e)}")
            raise RepositoryException(f"Failed to get pass: {str(e)}")
