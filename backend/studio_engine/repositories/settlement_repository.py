# backend/studio_engine/repositories/settlement_repository.py
import logging
from typing import Any, Dict, List, Optional, Sequence, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.settlement import Settlement, SettlementItem
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SettlementRepository(BaseRepository[Settlement]):
    """Persistence for settlement headers and their items."""

    def __init__(self, db: Session):
        super().__init__(db, Settlement)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Settlement.items))

    def create_with_items(
        self, header: Dict[str, Any], items: Sequence[Dict[str, Any]]
    ) -> Settlement:
        """
        Add a settlement and its items in one flush.

        Note: Does NOT commit; the caller's transaction makes header and items
        visible together or not at all.
        """
        try:
            settlement = Settlement(**header)
            settlement.items = [SettlementItem(**item) for item in items]
            self.db.add(settlement)
            self.db.flush()
            return settlement
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating settlement: {str(e)}")
            raise RepositoryException(f"Failed to create settlement: {str(e)}")

    def list_settlements(
        self, trainer_id: Optional[int] = None, status: Optional[str] = None
    ) -> List[Settlement]:
        try:
            query = self.db.query(Settlement)
            if trainer_id is not None:
                query = query.filter(Settlement.trainer_id == trainer_id)
            if status is not None:
                query = query.filter(Settlement.status == status)
            return cast(
                List[Settlement],
                query.order_by(Settlement.period_start.desc(), Settlement.id.desc()).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing settlements: {str(e)}")
            raise RepositoryException(f"Failed to list settlements: {str(e)}")
