# backend/studio_engine/repositories/pricing_repository.py
"""
Pricing Repository for the studio booking engine.

Each lookup returns the single row that applies at a moment: active, with
``valid_from <= at`` and an open or not yet passed ``valid_until``. When
several rows qualify the latest ``valid_from`` wins and the highest id breaks
the tie, so the answer is deterministic for a fixed database state.
"""

from datetime import datetime
import logging
from typing import Any, Optional, cast

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.class_pricing import ClassPricingDefault, ClientClassPricing
from ..models.service_type import ClientPriceCode, ServiceType, StaffPriceCode
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _valid_at(query: Query, model: Any, at: datetime) -> Query:
    return query.filter(
        model.valid_from <= at,
        or_(model.valid_until.is_(None), model.valid_until >= at),
    ).order_by(model.valid_from.desc(), model.id.desc())


class PricingRepository(BaseRepository[ServiceType]):
    """
    Repository for price lookups.

    Primary model is ServiceType; price codes and class pricing are queried
    directly.
    """

    def __init__(self, db: Session):
        super().__init__(db, ServiceType)

    # Individual sessions

    def get_service_type(self, service_type_id: int) -> Optional[ServiceType]:
        return self.get_by_id(service_type_id, load_relationships=False)

    def get_client_price_code(
        self, client_id: int, service_type_id: int, at: datetime
    ) -> Optional[ClientPriceCode]:
        try:
            query = self.db.query(ClientPriceCode).filter(
                ClientPriceCode.client_id == client_id,
                ClientPriceCode.service_type_id == service_type_id,
                ClientPriceCode.is_active.is_(True),
            )
            return cast(Optional[ClientPriceCode], _valid_at(query, ClientPriceCode, at).first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting client price code: {str(e)}")
            raise RepositoryException(f"Failed to get client price code: {str(e)}")

    def get_staff_price_code(
        self, staff_id: int, service_type_id: int, at: datetime
    ) -> Optional[StaffPriceCode]:
        try:
            query = self.db.query(StaffPriceCode).filter(
                StaffPriceCode.staff_id == staff_id,
                StaffPriceCode.service_type_id == service_type_id,
                StaffPriceCode.is_active.is_(True),
            )
            return cast(Optional[StaffPriceCode], _valid_at(query, StaffPriceCode, at).first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting staff price code: {str(e)}")
            raise RepositoryException(f"Failed to get staff price code: {str(e)}")

    # Classes

    def get_client_occurrence_pricing(
        self, client_id: int, occurrence_id: int, at: datetime
    ) -> Optional[ClientClassPricing]:
        try:
            query = self.db.query(ClientClassPricing).filter(
                ClientClassPricing.client_id == client_id,
                ClientClassPricing.class_occurrence_id == occurrence_id,
            )
            return cast(
                Optional[ClientClassPricing], _valid_at(query, ClientClassPricing, at).first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting client occurrence pricing: {str(e)}")
            raise RepositoryException(f"Failed to get client class pricing: {str(e)}")

    def get_client_template_pricing(
        self, client_id: int, template_id: int, at: datetime
    ) -> Optional[ClientClassPricing]:
        try:
            query = self.db.query(ClientClassPricing).filter(
                ClientClassPricing.client_id == client_id,
                ClientClassPricing.class_template_id == template_id,
                ClientClassPricing.class_occurrence_id.is_(None),
            )
            return cast(
                Optional[ClientClassPricing], _valid_at(query, ClientClassPricing, at).first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting client template pricing: {str(e)}")
            raise RepositoryException(f"Failed to get client class pricing: {str(e)}")

    def get_class_pricing_default(
        self, template_id: int, at: datetime
    ) -> Optional[ClassPricingDefault]:
        try:
            query = self.db.query(ClassPricingDefault).filter(
                ClassPricingDefault.class_template_id == template_id,
                ClassPricingDefault.is_active.is_(True),
            )
            return cast(
                Optional[ClassPricingDefault], _valid_at(query, ClassPricingDefault, at).first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting class pricing default: {str(e)}")
            raise RepositoryException(f"Failed to get class pricing default: {str(e)}")
