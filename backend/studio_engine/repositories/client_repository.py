# backend/studio_engine/repositories/client_repository.py
import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.client import Client
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClientRepository(BaseRepository[Client]):
    """Client lookups plus the row lock taken before any balance change."""

    def __init__(self, db: Session):
        super().__init__(db, Client)

    def lock(self, client_id: int) -> Optional[Client]:
        return self.get_for_update(client_id)

    def get_technical_guest(self, configured_id: Optional[int] = None) -> Optional[Client]:
        """
        The client row standing in for anonymous walk-ins.

        A configured id wins; otherwise the first client flagged as technical
        guest is used.
        """
        if configured_id is not None:
            return self.get_by_id(configured_id, load_relationships=False)
        try:
            return cast(
                Optional[Client],
                self.db.query(Client)
                .filter(Client.is_technical_guest.is_(True))
                .order_by(Client.id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding technical guest: {str(e)}")
            raise RepositoryException(f"Failed to find technical guest client: {str(e)}")
